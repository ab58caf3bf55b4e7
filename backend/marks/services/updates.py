"""Validation and idempotent merging of mark submissions.

Each submission is checked, authorized and applied on its own, inside its own
transaction, so one bad row in a pasted class sheet never blocks the others.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import transaction

from academics.directory import StudentDirectory, TeacherDirectory

from ..domain import ABSENT, RecordSnapshot, build_entry, parse_scores
from ..exceptions import (
    AuthorizationError, ConflictError, MarksError, NotFoundError, StaleRecordError, ValidationError,
)
from ..policy import ExamTypeTable
from ..store import MarkStore

logger = logging.getLogger(__name__)

MERGE = 'merge'
CREATE = 'create'
MODES = (MERGE, CREATE)

# Read-modify-write attempts before a concurrently changed record is reported
STALE_RETRIES = 3


@dataclass(frozen=True)
class Submission:
    student_id: int
    exam_type: str
    year: str
    subject_name: str
    teacher_id: int
    scores: object


@dataclass
class ItemResult:
    index: int
    ok: bool
    record: Optional[RecordSnapshot] = None
    entry: object = None
    created: bool = False
    changed: bool = False
    error: Optional[MarksError] = None


@dataclass
class BatchResult:
    items: List[ItemResult] = field(default_factory=list)

    @property
    def saved(self) -> int:
        return sum(1 for i in self.items if i.ok)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if not i.ok)

    @property
    def errors(self) -> List[ItemResult]:
        return [i for i in self.items if not i.ok]


@dataclass(frozen=True)
class EntryResult:
    record: RecordSnapshot
    entry: object
    changed: bool


def _as_id(value, name):
    if isinstance(value, bool):
        raise ValidationError(f'Invalid {name} id', field=name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {name} id', field=name)


class MarkUpdateEngine:
    def __init__(self, store=None, exam_types=None, students=None, teachers=None):
        self.store = store or MarkStore()
        self.exam_types = exam_types or ExamTypeTable.from_settings()
        self.students = students or StudentDirectory()
        self.teachers = teachers or TeacherDirectory()

    # ---- parsing ----
    def parse_item(self, item, principal=None) -> Submission:
        """Turn one raw batch item into a Submission, or raise ValidationError.

        ``teacher`` defaults to the caller when a teacher submits for themself.
        A client-supplied ``total`` is ignored; it is always recomputed.
        """
        if not isinstance(item, dict):
            raise ValidationError('Invalid item')
        if item.get('student') in (None, ''):
            raise ValidationError('student is required', field='student')
        student_id = _as_id(item.get('student'), 'student')

        teacher = item.get('teacher')
        if teacher in (None, '') and principal is not None and principal.is_teacher:
            teacher = principal.id
        if teacher in (None, ''):
            raise ValidationError('teacher is required', field='teacher')
        teacher_id = _as_id(teacher, 'teacher')

        exam_type = self.exam_types.canonical(item.get('exam_type'))

        year = item.get('year')
        if not isinstance(year, str) or not year.strip():
            raise ValidationError('year is required', field='year')

        subject = item.get('subject')
        if not isinstance(subject, str) or not subject.strip():
            raise ValidationError('subject is required', field='subject')

        if item.get('absent') is True:
            scores = ABSENT
        elif item.get('scores') is None:
            raise ValidationError('scores are required unless the student is absent', field='scores')
        else:
            scores = parse_scores(item.get('scores'))

        return Submission(
            student_id=student_id,
            exam_type=exam_type,
            year=year.strip(),
            subject_name=subject.strip(),
            teacher_id=teacher_id,
            scores=scores,
        )

    # ---- authorization ----
    def _student(self, student_id):
        student = self.students.lookup_student(student_id)
        if student is None:
            raise NotFoundError(f'Student {student_id} not found', field='student')
        return student

    def _check_owner(self, principal, teacher_id):
        if principal is None or principal.role not in ('teacher', 'admin'):
            raise AuthorizationError('Only teachers and admins can record marks')
        if principal.is_teacher and principal.id != teacher_id:
            raise AuthorizationError('Teachers can only record their own marks')

    def authorize(self, principal, teacher_id, subject_name, student):
        self._check_owner(principal, teacher_id)
        teacher = self.teachers.lookup_teacher(teacher_id)
        if teacher is None:
            raise NotFoundError(f'Teacher {teacher_id} not found', field='teacher')
        if not teacher.teaches(subject_name, student.year, student.division):
            raise AuthorizationError(
                f'{teacher.name} is not assigned to {subject_name} for {student.year} {student.division}'
            )
        return teacher

    # ---- operations ----
    def submit_batch(self, items, principal, mode=MERGE) -> BatchResult:
        if mode not in MODES:
            raise ValidationError(f'Unknown mode: {mode}', field='mode')
        if not isinstance(items, list):
            raise ValidationError('items must be an array', field='items')

        result = BatchResult()
        for idx, item in enumerate(items):
            try:
                with transaction.atomic():
                    item_result = self._submit_one(idx, item, principal, mode)
            except MarksError as exc:
                logger.warning('Mark item %s rejected (%s): %s', idx, exc.kind, exc.reason)
                result.items.append(ItemResult(index=idx, ok=False, error=exc))
                continue
            result.items.append(item_result)

        logger.info(
            'Mark batch from %s %s: %d saved, %d failed',
            getattr(principal, 'role', '?'), getattr(principal, 'id', '?'), result.saved, result.failed,
        )
        return result

    def _submit_one(self, idx, item, principal, mode) -> ItemResult:
        sub = self.parse_item(item, principal)
        student = self._student(sub.student_id)
        self.authorize(principal, sub.teacher_id, sub.subject_name, student)
        entry = build_entry(sub.subject_name, sub.teacher_id, sub.scores, self.exam_types.resolve(sub.exam_type))

        for attempt in range(1, STALE_RETRIES + 1):
            record = self.store.get(student.id, sub.exam_type, sub.year)
            created = record is None
            if created:
                record = RecordSnapshot(id=None, student_id=student.id, exam_type=sub.exam_type, year=sub.year)
            else:
                pos = record.find(sub.subject_name, sub.teacher_id)
                if pos is not None:
                    if mode == CREATE:
                        raise ConflictError(
                            f'Marks for {sub.subject_name} already exist for student {student.id} ({sub.exam_type} {sub.year})'
                        )
                    if record.entries[pos] == entry:
                        return ItemResult(index=idx, ok=True, record=record, entry=entry)
            record.put(entry)
            try:
                saved = self.store.upsert(record, expected_version=None if created else record.version)
            except StaleRecordError:
                if attempt == STALE_RETRIES:
                    raise
                logger.info('Record for student %s changed while merging item %s, retrying', student.id, idx)
                continue
            return ItemResult(index=idx, ok=True, record=saved, entry=entry, created=created, changed=True)

    def update_entry(self, record_id, subject_name, teacher_id, scores, principal, expected_version=None) -> EntryResult:
        """Replace one entry's scores.

        With ``expected_version`` a concurrent change is reported as a
        conflict. Without it the write is retried against the fresh record so
        other entries are never lost.
        """
        teacher_id = _as_id(teacher_id, 'teacher')
        scores = parse_scores(scores)
        retries = 1 if expected_version is not None else STALE_RETRIES
        for attempt in range(1, retries + 1):
            record = self.store.get_by_id(record_id)
            pos = record.find(subject_name, teacher_id)
            if pos is None:
                raise NotFoundError(f'No {subject_name} entry by teacher {teacher_id} in record {record_id}')
            student = self._student(record.student_id)
            self.authorize(principal, teacher_id, subject_name, student)

            entry = build_entry(subject_name, teacher_id, scores, self.exam_types.resolve(record.exam_type))
            if record.entries[pos] == entry:
                return EntryResult(record=record, entry=entry, changed=False)
            record.entries[pos] = entry
            try:
                saved = self.store.upsert(
                    record, expected_version=record.version if expected_version is None else expected_version
                )
            except StaleRecordError:
                if attempt == retries:
                    raise
                logger.info('Record %s changed while updating %s, retrying', record_id, subject_name)
                continue
            logger.info('Updated %s entry in record %s to %s', subject_name, record_id, entry.status)
            return EntryResult(record=saved, entry=entry, changed=True)

    def remove_entry(self, record_id, subject_name, teacher_id, principal, expected_version=None) -> bool:
        """Remove one entry. Returns True when that emptied and deleted the record."""
        teacher_id = _as_id(teacher_id, 'teacher')
        self._check_owner(principal, teacher_id)
        retries = 1 if expected_version is not None else STALE_RETRIES
        for attempt in range(1, retries + 1):
            try:
                with transaction.atomic():
                    record = self.store.get_by_id(record_id)
                    if record.remove(subject_name, teacher_id) is None:
                        raise NotFoundError(f'No {subject_name} entry by teacher {teacher_id} in record {record_id}')
                    self.store.upsert(
                        record, expected_version=record.version if expected_version is None else expected_version
                    )
                    deleted = self.store.delete_if_empty(record_id)
            except StaleRecordError:
                if attempt == retries:
                    raise
                logger.info('Record %s changed while removing %s, retrying', record_id, subject_name)
                continue
            break
        logger.info('Removed %s entry from record %s%s', subject_name, record_id, ' (record deleted)' if deleted else '')
        return deleted
