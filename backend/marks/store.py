"""Durable storage of mark records.

The store only moves snapshots in and out of the database. It knows nothing
about thresholds, permissions or idempotency, which live in the services.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from django.db import transaction
from django.db.models import Prefetch

from .domain import RecordSnapshot
from .exceptions import ConflictError, NotFoundError, StaleRecordError
from .models import ExamEntry, MarkRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordFilter:
    student_ids: Optional[Sequence[int]] = None
    exam_type: Optional[str] = None
    year: Optional[str] = None
    subject_name: Optional[str] = None
    teacher_id: Optional[int] = None


def _ordered_entries():
    return Prefetch('entries', queryset=ExamEntry.objects.order_by('position', 'id'))


def to_snapshot(row: MarkRecord) -> RecordSnapshot:
    return RecordSnapshot(
        id=row.id,
        student_id=row.student_id,
        exam_type=row.exam_type,
        year=row.year,
        version=row.version,
        entries=[e.as_entry() for e in row.entries.all()],
    )


class MarkStore:

    def queryset(self, flt: Optional[RecordFilter] = None):
        qs = MarkRecord.objects.all()
        if flt is not None:
            if flt.student_ids is not None:
                qs = qs.filter(student_id__in=list(flt.student_ids))
            if flt.exam_type:
                qs = qs.filter(exam_type=flt.exam_type)
            if flt.year:
                qs = qs.filter(year=flt.year)
            if flt.subject_name:
                qs = qs.filter(entries__subject_name=flt.subject_name)
            if flt.teacher_id is not None:
                qs = qs.filter(entries__teacher_id=flt.teacher_id)
            if flt.subject_name or flt.teacher_id is not None:
                qs = qs.distinct()
        return qs.order_by('student_id', 'exam_type', 'year', 'id').prefetch_related(_ordered_entries())

    def get(self, student_id, exam_type, year) -> Optional[RecordSnapshot]:
        row = (
            MarkRecord.objects
            .filter(student_id=student_id, exam_type=exam_type, year=year)
            .prefetch_related(_ordered_entries())
            .first()
        )
        return to_snapshot(row) if row else None

    def get_by_id(self, record_id) -> RecordSnapshot:
        row = MarkRecord.objects.filter(pk=record_id).prefetch_related(_ordered_entries()).first()
        if row is None:
            raise NotFoundError(f'Mark record {record_id} not found')
        return to_snapshot(row)

    def get_many(self, flt: RecordFilter) -> List[RecordSnapshot]:
        return [to_snapshot(row) for row in self.queryset(flt)]

    def upsert(self, snapshot: RecordSnapshot, expected_version=None) -> RecordSnapshot:
        """Write the record and exactly the entries in ``snapshot``.

        With ``expected_version`` the write only happens if the stored version
        still matches, otherwise it is last-write-wins.
        """
        keys = [(e.subject_name, e.teacher_id) for e in snapshot.entries]
        if len(keys) != len(set(keys)):
            raise ConflictError('A record cannot hold two entries for the same subject and teacher')
        if snapshot.id is None and not snapshot.entries:
            raise ValueError('Refusing to create an empty mark record')

        with transaction.atomic():
            if snapshot.id is None:
                row, created = MarkRecord.objects.select_for_update().get_or_create(
                    student_id=snapshot.student_id,
                    exam_type=snapshot.exam_type,
                    year=snapshot.year,
                )
                if not created:
                    # Someone else created the record after this snapshot was read
                    raise StaleRecordError(
                        f'Mark record for student {snapshot.student_id} ({snapshot.exam_type} {snapshot.year}) already exists'
                    )
            else:
                row = MarkRecord.objects.select_for_update().filter(pk=snapshot.id).first()
                if row is None:
                    raise NotFoundError(f'Mark record {snapshot.id} not found')
            if expected_version is not None and row.version != expected_version:
                raise StaleRecordError(
                    f'Mark record {row.id} was modified (version {row.version}, expected {expected_version})'
                )

            existing = {(e.subject_name, e.teacher_id): e for e in row.entries.all()}
            for position, entry in enumerate(snapshot.entries):
                values = ExamEntry.fields_for(entry, position)
                obj = existing.pop((entry.subject_name, entry.teacher_id), None)
                if obj is None:
                    ExamEntry.objects.create(
                        record=row, subject_name=entry.subject_name, teacher_id=entry.teacher_id, **values
                    )
                    continue
                changed = [name for name, value in values.items() if getattr(obj, name) != value]
                if changed:
                    for name in changed:
                        setattr(obj, name, values[name])
                    obj.save(update_fields=changed)
            for obj in existing.values():
                obj.delete()

            row.version += 1
            row.save(update_fields=['version', 'updated_at'])

        logger.debug('Saved mark record %s version %s (%d entries)', row.id, row.version, len(snapshot.entries))
        return self.get_by_id(row.id)

    def delete_if_empty(self, record_id) -> bool:
        row = MarkRecord.objects.filter(pk=record_id).first()
        if row is None:
            raise NotFoundError(f'Mark record {record_id} not found')
        if row.entries.exists():
            return False
        row.delete()
        logger.info('Deleted empty mark record %s', record_id)
        return True

    def delete(self, record_id):
        deleted, _ = MarkRecord.objects.filter(pk=record_id).delete()
        if not deleted:
            raise NotFoundError(f'Mark record {record_id} not found')
