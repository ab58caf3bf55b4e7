"""Read-only roll-ups of mark records.

Everything here is computed on demand from store snapshots; nothing is cached
or persisted. Absent entries are carried through for display but never enter
a total, count or average.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Tuple

from academics.directory import StudentDirectory, StudentInfo

from ..domain import ABSENT_MARKER, Absent, Graded, round_half_up
from ..exceptions import NotFoundError
from ..policy import ExamTypeTable
from ..store import MarkStore, RecordFilter

logger = logging.getLogger(__name__)

TOP_N = 3


@dataclass(frozen=True)
class Tally:
    total: int = 0
    count: int = 0

    @property
    def average(self) -> Optional[float]:
        if not self.count:
            return None
        return round_half_up(self.total / self.count)

    @property
    def mean(self) -> Optional[Fraction]:
        """Exact average, for ordering."""
        return Fraction(self.total, self.count) if self.count else None

    def add(self, value: int) -> 'Tally':
        return Tally(self.total + value, self.count + 1)

    def as_dict(self):
        return {'total': self.total, 'count': self.count, 'average': self.average}


def tally_by(pairs: Iterable[Tuple[str, object]]) -> Dict[str, Tally]:
    """Sum graded totals per key. Keys with only absent entries are left out."""
    out: Dict[str, Tally] = {}
    for key, entry in pairs:
        if isinstance(entry, Graded):
            out[key] = out.get(key, Tally()).add(entry.total)
    return out


@dataclass(frozen=True)
class StudentStanding:
    student: StudentInfo
    total: int
    count: int
    average: float
    position: int

    def as_dict(self):
        return {
            'student_id': self.student.id,
            'roll_no': self.student.roll_no,
            'name': self.student.name,
            'total': self.total,
            'count': self.count,
            'average': self.average,
            'position': self.position,
        }


@dataclass(frozen=True)
class ClassDashboard:
    year: str
    division: str
    subject_performance: Dict[str, Tally]
    exam_performance: Dict[str, Tally]
    ranked_students: Tuple[StudentStanding, ...]
    unranked: Tuple[StudentInfo, ...]
    class_average: Optional[float]

    @property
    def top(self) -> Tuple[StudentStanding, ...]:
        return self.ranked_students[:TOP_N]

    @property
    def bottom(self) -> Tuple[StudentStanding, ...]:
        return self.ranked_students[-TOP_N:]

    def as_dict(self):
        return {
            'year': self.year,
            'division': self.division,
            'subject_performance': {k: v.as_dict() for k, v in self.subject_performance.items()},
            'exam_performance': {k: v.as_dict() for k, v in self.exam_performance.items()},
            'ranked_students': [s.as_dict() for s in self.ranked_students],
            'top': [s.as_dict() for s in self.top],
            'bottom': [s.as_dict() for s in self.bottom],
            'unranked': [{'student_id': s.id, 'roll_no': s.roll_no, 'name': s.name} for s in self.unranked],
            'class_average': self.class_average,
        }


@dataclass(frozen=True)
class SubjectViewRow:
    student_id: int
    record_id: int
    teacher_id: int
    status: str
    scores: object
    total: object
    percentage: Optional[int]

    def as_dict(self):
        return {
            'record_id': self.record_id,
            'teacher_id': self.teacher_id,
            'scores': self.scores,
            'total': self.total,
            'status': self.status,
            'percentage': self.percentage,
        }


@dataclass(frozen=True)
class TranscriptSection:
    record_id: int
    exam_type: str
    year: str
    entries: tuple

    def as_dict(self):
        return {
            'record_id': self.record_id,
            'exam_type': self.exam_type,
            'year': self.year,
            'entries': [entry_dict(e) for e in self.entries],
        }


@dataclass(frozen=True)
class ClassSheetRow:
    student: StudentInfo
    # (exam_type, entry) pairs in record then entry order
    entries: tuple

    def as_dict(self):
        return {
            'student_id': self.student.id,
            'roll_no': self.student.roll_no,
            'name': self.student.name,
            'marks': [dict(entry_dict(e), exam_type=t) for t, e in self.entries] or None,
        }


def entry_dict(entry):
    """Display form of an entry; absences show the AB marker, never zero."""
    if isinstance(entry, Absent):
        scores, total = ABSENT_MARKER, ABSENT_MARKER
    else:
        scores, total = entry.scores(), entry.total
    return {
        'subject': entry.subject_name,
        'teacher_id': entry.teacher_id,
        'kind': entry.kind,
        'scores': scores,
        'total': total,
        'total_marks': entry.total_marks,
        'status': entry.status,
        'percentage': entry.percentage,
    }


class AggregationEngine:
    def __init__(self, store=None, exam_types=None, students=None):
        self.store = store or MarkStore()
        self.exam_types = exam_types or ExamTypeTable.from_settings()
        self.students = students or StudentDirectory()

    def _roster(self, year, division) -> List[StudentInfo]:
        roster = self.students.list_students(year, division)
        if not roster:
            raise NotFoundError(f'No students found for {year} {division}')
        return roster

    def subject_view(self, subject_name, exam_type, year=None, student_ids=None) -> Dict[int, SubjectViewRow]:
        """Per-student result for one subject and exam type, optionally for ``student_ids`` only.

        When several records match a student (no ``year`` given, or several
        teachers graded the subject) the first in store order is shown.
        """
        exam_type = self.exam_types.canonical(exam_type)
        records = self.store.get_many(RecordFilter(
            student_ids=student_ids, exam_type=exam_type, year=year, subject_name=subject_name,
        ))
        view: Dict[int, SubjectViewRow] = OrderedDict()
        for record in records:
            for entry in record.entries:
                if entry.subject_name != subject_name or record.student_id in view:
                    continue
                data = entry_dict(entry)
                view[record.student_id] = SubjectViewRow(
                    student_id=record.student_id,
                    record_id=record.id,
                    teacher_id=entry.teacher_id,
                    status=entry.status,
                    scores=data['scores'],
                    total=data['total'],
                    percentage=entry.percentage,
                )
        return view

    def class_dashboard(self, year, division) -> ClassDashboard:
        roster = self._roster(year, division)
        by_id = {s.id: s for s in roster}
        records = self.store.get_many(RecordFilter(student_ids=list(by_id), year=year))

        subject_pairs, exam_pairs, student_pairs = [], [], []
        for record in records:
            for entry in record.entries:
                subject_pairs.append((entry.subject_name, entry))
                exam_pairs.append((record.exam_type, entry))
                student_pairs.append((record.student_id, entry))
        per_student = tally_by(student_pairs)

        ordered = sorted(per_student.items(), key=lambda kv: (-kv[1].mean, kv[0]))
        ranked = []
        last_mean, last_pos = None, 0
        for i, (sid, tally) in enumerate(ordered, start=1):
            # Equal averages share a position, order within them is by id
            pos = last_pos if tally.mean == last_mean else i
            ranked.append(StudentStanding(by_id[sid], tally.total, tally.count, tally.average, pos))
            last_mean, last_pos = tally.mean, pos

        class_total = Tally(sum(t.total for t in per_student.values()), sum(t.count for t in per_student.values()))
        dashboard = ClassDashboard(
            year=year,
            division=division,
            subject_performance=dict(sorted(tally_by(subject_pairs).items())),
            exam_performance=dict(sorted(tally_by(exam_pairs).items())),
            ranked_students=tuple(ranked),
            unranked=tuple(s for s in roster if s.id not in per_student),
            class_average=class_total.average,
        )
        logger.debug('Dashboard %s %s: %d ranked, %d unranked', year, division, len(ranked), len(dashboard.unranked))
        return dashboard

    def transcript(self, student_id, exam_type=None, year=None, subject_name=None) -> List[TranscriptSection]:
        if self.students.lookup_student(student_id) is None:
            raise NotFoundError(f'Student {student_id} not found')
        if exam_type:
            exam_type = self.exam_types.canonical(exam_type)
        records = self.store.get_many(RecordFilter(student_ids=[student_id], exam_type=exam_type, year=year))
        sections = []
        for record in records:
            entries = tuple(e for e in record.entries if not subject_name or e.subject_name == subject_name)
            if entries:
                sections.append(TranscriptSection(record.id, record.exam_type, record.year, entries))
        return sections

    def class_sheet(self, year, division, exam_type=None, subject_name=None) -> List[ClassSheetRow]:
        """Every student of the class with their matching entries, marked or not."""
        roster = self._roster(year, division)
        if exam_type:
            exam_type = self.exam_types.canonical(exam_type)
        records = self.store.get_many(
            RecordFilter(student_ids=[s.id for s in roster], exam_type=exam_type, year=year)
        )
        found: Dict[int, list] = {}
        for record in records:
            for entry in record.entries:
                if subject_name and entry.subject_name != subject_name:
                    continue
                found.setdefault(record.student_id, []).append((record.exam_type, entry))
        return [ClassSheetRow(student=s, entries=tuple(found.get(s.id, ()))) for s in roster]
