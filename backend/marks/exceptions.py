"""Errors raised by the marks services.

Every error carries a machine-checkable ``kind`` and a human-readable
``reason``. The services never build HTTP responses; ``api_exception_handler``
is the only place these are mapped onto status codes.
"""
import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarksError(Exception):
    kind = 'error'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason, field=None):
        super().__init__(reason)
        self.reason = reason
        self.field = field

    def as_dict(self):
        data = {'kind': self.kind, 'reason': self.reason}
        if self.field:
            data['field'] = self.field
        return data


class ValidationError(MarksError):
    kind = 'validation'
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(MarksError):
    kind = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(MarksError):
    kind = 'authorization'
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(MarksError):
    kind = 'conflict'
    status_code = status.HTTP_409_CONFLICT


class StaleRecordError(ConflictError):
    """The stored record changed after the snapshot being written was read."""


class ReportTimeoutError(MarksError):
    kind = 'timeout'
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


def api_exception_handler(exc, context):
    """DRF exception handler: domain errors first, then DRF's defaults."""
    if isinstance(exc, MarksError):
        body = {'kind': exc.kind, 'detail': exc.reason}
        if exc.field:
            body['field'] = exc.field
        return Response(body, status=exc.status_code)
    if isinstance(exc, DatabaseError):
        view = context.get('view')
        logger.exception('Storage failure in %s', type(view).__name__ if view else 'unknown view')
        return Response(
            {'kind': 'infrastructure', 'detail': 'Storage is temporarily unavailable. Try again shortly.'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return exception_handler(exc, context)
