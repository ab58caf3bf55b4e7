from django.http import FileResponse
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from academics.directory import StudentDirectory, TeacherDirectory
from accounts.permissions import IsTeacherOrAdmin, principal_from_user

from .domain import ABSENT
from .exceptions import AuthorizationError, ValidationError
from .filters import MarkRecordFilter
from .policy import ExamTypeTable
from .reports.runner import FORMATS, render_report
from .reports.viewmodel import CLASS, KINDS, SUBJECT, build_class_report, build_subject_report
from .serializers import EntryUpdateSerializer, MarkRecordSerializer, batch_result_data, snapshot_data
from .services.aggregation import AggregationEngine, entry_dict
from .services.updates import MERGE, MarkUpdateEngine
from .store import MarkStore


def _required(request, *names):
    values = []
    for name in names:
        value = (request.query_params.get(name) or '').strip()
        if not value:
            raise ValidationError(f'{name} is required', field=name)
        values.append(value)
    return values


def _check_class_access(request, year, division):
    """Admins see every class, teachers only classes they teach or lead."""
    principal = principal_from_user(request.user)
    if principal.is_admin:
        return
    teacher = TeacherDirectory().lookup_teacher(principal.id)
    if teacher is None or not teacher.works_with_class(year, division):
        raise AuthorizationError(f'You do not teach {year} {division}')


def _subject_students(request, subject):
    """Ids of students in classes the caller teaches ``subject`` to; None for admins."""
    principal = principal_from_user(request.user)
    if principal.is_admin:
        return None
    teacher = TeacherDirectory().lookup_teacher(principal.id)
    classes = teacher.classes_for(subject) if teacher else ()
    if not classes:
        raise AuthorizationError(f'You do not teach {subject}')
    directory = StudentDirectory()
    return [s.id for c in classes for s in directory.list_students(c.year, c.division)]


class MarkRecordViewSet(viewsets.ReadOnlyModelViewSet):
    """Mark records plus the write actions that go through the update engine.

    Records are never created or edited directly; ``submit`` and ``entry``
    validate, authorize and derive status before anything is stored.
    """
    serializer_class = MarkRecordSerializer
    permission_classes = [IsTeacherOrAdmin]
    filter_backends = [DjangoFilterBackend]
    filterset_class = MarkRecordFilter

    def get_queryset(self):
        return MarkStore().queryset().select_related('student')

    @action(detail=False, methods=['post'], url_path='submit')
    def submit(self, request):
        """Submit many entries at once.
        Payload format:
        {
          "mode": "merge" | "create",
          "items": [
            {"student": <id>, "exam_type": "unit1", "year": "SE", "subject": "Physics",
             "teacher": <user id>, "scores": {"q1q2": 7, "q3q4": 8, "q5q6": 5, "q7q8": 6}},
            {"student": <id>, ..., "absent": true}
          ]
        }
        """
        data = request.data
        if isinstance(data, list):
            items, mode = data, MERGE
        else:
            items = data.get('items')
            mode = data.get('mode') or request.query_params.get('mode') or MERGE
        result = MarkUpdateEngine().submit_batch(items, principal_from_user(request.user), mode=mode)
        if not result.failed:
            code = status.HTTP_200_OK
        elif result.saved:
            code = status.HTTP_207_MULTI_STATUS
        else:
            code = status.HTTP_400_BAD_REQUEST
        return Response(batch_result_data(result), status=code)

    @action(detail=True, methods=['put', 'delete'], url_path='entry')
    def entry(self, request, pk=None):
        principal = principal_from_user(request.user)
        engine = MarkUpdateEngine()
        if request.method == 'DELETE':
            subject = _required(request, 'subject')[0]
            teacher = request.query_params.get('teacher') or principal.id
            version = request.query_params.get('version')
            deleted = engine.remove_entry(
                pk, subject, teacher, principal,
                expected_version=int(version) if version and version.isdigit() else None,
            )
            return Response({'record_deleted': deleted})

        ser = EntryUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        vd = ser.validated_data
        scores = ABSENT if vd.get('absent') else vd.get('scores')
        result = engine.update_entry(
            pk, vd['subject'], vd.get('teacher', principal.id), scores, principal,
            expected_version=vd.get('version'),
        )
        return Response({
            'record': snapshot_data(result.record),
            'entry': entry_dict(result.entry),
            'changed': result.changed,
        })


@api_view(['GET'])
@permission_classes([IsTeacherOrAdmin])
def subject_view(request):
    subject, exam_type = _required(request, 'subject', 'exam_type')
    year = request.query_params.get('year') or None
    student_ids = _subject_students(request, subject)
    view = AggregationEngine().subject_view(subject, exam_type, year=year, student_ids=student_ids)
    return Response({str(sid): row.as_dict() for sid, row in view.items()})


@api_view(['GET'])
@permission_classes([IsTeacherOrAdmin])
def class_dashboard(request):
    year, division = _required(request, 'year', 'division')
    _check_class_access(request, year, division)
    return Response(AggregationEngine().class_dashboard(year, division).as_dict())


@api_view(['GET'])
@permission_classes([IsTeacherOrAdmin])
def class_sheet(request):
    year, division = _required(request, 'year', 'division')
    _check_class_access(request, year, division)
    rows = AggregationEngine().class_sheet(
        year, division,
        exam_type=request.query_params.get('exam_type') or None,
        subject_name=request.query_params.get('subject') or None,
    )
    return Response([r.as_dict() for r in rows])


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def transcript(request, student_id):
    user = request.user
    principal = principal_from_user(user)
    if not (principal.is_admin or principal.is_teacher):
        # Students may only read their own marks
        profile = getattr(user, 'student_profile', None)
        if profile is None or profile.id != student_id:
            raise AuthorizationError('You can only view your own marks')
    sections = AggregationEngine().transcript(
        student_id,
        exam_type=request.query_params.get('exam_type') or None,
        year=request.query_params.get('year') or None,
        subject_name=request.query_params.get('subject') or None,
    )
    return Response({'student': student_id, 'sections': [s.as_dict() for s in sections]})


@api_view(['GET'])
@permission_classes([IsTeacherOrAdmin])
def export_report(request):
    kind = request.query_params.get('kind') or SUBJECT
    fmt = request.query_params.get('format') or 'pdf'
    if kind not in KINDS:
        raise ValidationError(f'Unknown report kind: {kind}', field='kind')
    if fmt not in FORMATS:
        raise ValidationError(f'Unknown format: {fmt}', field='format')
    year, division = _required(request, 'year', 'division')
    _check_class_access(request, year, division)
    engine = AggregationEngine()
    if kind == CLASS:
        vm = build_class_report(engine, year, division, exam_type=request.query_params.get('exam_type') or None)
    else:
        subject, exam_type = _required(request, 'subject', 'exam_type')
        vm = build_subject_report(engine, year, division, subject, exam_type)
    out = render_report(vm, fmt)
    return FileResponse(out, as_attachment=True, filename=f'{vm.filename}.{fmt}', content_type=FORMATS[fmt])


@api_view(['GET'])
def exam_types(request):
    return Response([
        {'name': p.name, 'threshold': p.threshold, 'total_marks': p.total_marks, 'aliases': list(p.aliases)}
        for p in ExamTypeTable.from_settings().policies()
    ])
