"""Runs report rendering off the request thread with a deadline.

The view model is built on the request thread (it needs the database); only
serialization happens in the pool. Output goes to a spooled temporary file
that stays in memory for small reports and spills to disk for large ones.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from tempfile import SpooledTemporaryFile

from django.conf import settings

from ..exceptions import ReportTimeoutError, ValidationError
from .pdf import render_pdf
from .viewmodel import RenderCancelled
from .xlsx import render_xlsx

logger = logging.getLogger(__name__)

PDF = 'pdf'
XLSX = 'xlsx'
FORMATS = {
    PDF: 'application/pdf',
    XLSX: 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}

_executor = None
_executor_lock = threading.Lock()


def get_executor():
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=getattr(settings, 'MARKS_REPORT_WORKERS', 2),
                thread_name_prefix='marks-report',
            )
        return _executor


def _serialize(vm, fmt, out, cancel):
    if fmt == PDF:
        render_pdf(vm, out, rows_per_page=getattr(settings, 'MARKS_REPORT_ROWS_PER_PAGE', 30), cancel=cancel)
    else:
        render_xlsx(vm, out, cancel=cancel)


def render_report(vm, fmt, timeout=None, executor=None, serializer=None):
    """Serialize ``vm`` as ``fmt`` and return the output file rewound to 0.

    Raises ReportTimeoutError when the deadline passes; the worker is told to
    stop at its next row or flowable and its partial output is discarded.
    """
    if fmt not in FORMATS:
        raise ValidationError(f'Unknown format: {fmt}', field='format')
    if timeout is None:
        timeout = getattr(settings, 'MARKS_REPORT_TIMEOUT_SECONDS', 60)
    serializer = serializer or _serialize
    executor = executor or get_executor()

    out = SpooledTemporaryFile(max_size=getattr(settings, 'MARKS_REPORT_SPOOL_BYTES', 5 * 1024 * 1024))
    cancel = threading.Event()
    future = executor.submit(serializer, vm, fmt, out, cancel)
    try:
        future.result(timeout=timeout)
    except FutureTimeout:
        cancel.set()
        future.add_done_callback(lambda _f: out.close())
        logger.error('Rendering %s %s report "%s" timed out after %ss', vm.kind, fmt, vm.title, timeout)
        raise ReportTimeoutError(f'Report generation timed out after {timeout} seconds')
    except RenderCancelled:
        out.close()
        raise ReportTimeoutError('Report generation was cancelled')
    except Exception:
        out.close()
        logger.exception('Rendering %s %s report "%s" failed', vm.kind, fmt, vm.title)
        raise
    out.seek(0)
    logger.info('Rendered %s %s report "%s" (%d rows)', vm.kind, fmt, vm.title, len(vm.rows))
    return out
