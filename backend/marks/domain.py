"""Value types for mark entries.

An exam entry is either ``Graded`` (four component scores and a derived
status) or ``Absent`` (sentinel values, never part of an average). Code that
consumes entries branches on the type, never on which fields happen to be set.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from .exceptions import ValidationError

ABSENT_SENTINEL = -1
ABSENT_MARKER = 'AB'

COMPONENTS = ('q1q2', 'q3q4', 'q5q6', 'q7q8')
COMPONENT_LABELS = {
    'q1q2': 'Q1/Q2',
    'q3q4': 'Q3/Q4',
    'q5q6': 'Q5/Q6',
    'q7q8': 'Q7/Q8',
}

PASS = 'Pass'
FAIL = 'Fail'
ABSENT_STATUS = 'Absent'


class _AbsentScores:
    """Marker passed instead of a breakdown to record an absence."""

    def __repr__(self):
        return 'ABSENT'


ABSENT = _AbsentScores()


def round_half_up(value, places=2) -> float:
    quant = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))


def percentage(total: int, total_marks: int) -> int:
    """Whole-number percentage, rounded half up (14/30 -> 47)."""
    return int((Decimal(total) * 100 / Decimal(total_marks)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _score(name, value) -> int:
    # Spreadsheet pastes arrive as "7" or 7.0; anything fractional is rejected
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{name} must be a whole number', field=name)
    if isinstance(value, str):
        value = value.strip()
        if not re.fullmatch(r'-?\d+', value, re.ASCII):
            raise ValidationError(f'{name} must be a whole number', field=name)
        value = int(value)
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f'{name} must be a whole number', field=name)
        value = int(value)
    elif not isinstance(value, int):
        raise ValidationError(f'{name} must be a whole number', field=name)
    if value < 0:
        raise ValidationError(f'{name} cannot be negative', field=name)
    return value


@dataclass(frozen=True)
class Breakdown:
    q1q2: int
    q3q4: int
    q5q6: int
    q7q8: int

    @property
    def total(self) -> int:
        return self.q1q2 + self.q3q4 + self.q5q6 + self.q7q8

    def as_dict(self) -> Dict[str, int]:
        return {c: getattr(self, c) for c in COMPONENTS}

    @classmethod
    def parse(cls, data) -> 'Breakdown':
        if not isinstance(data, Mapping):
            raise ValidationError('scores must be an object with q1q2, q3q4, q5q6 and q7q8', field='scores')
        missing = [c for c in COMPONENTS if c not in data]
        if missing:
            raise ValidationError(f'Missing score components: {", ".join(missing)}', field='scores')
        return cls(**{c: _score(c, data[c]) for c in COMPONENTS})


ScoreInput = Union[Breakdown, _AbsentScores]


def parse_scores(raw) -> ScoreInput:
    """Accept a breakdown, a mapping of components, or the absent marker."""
    if raw is ABSENT or isinstance(raw, Breakdown):
        return raw
    if isinstance(raw, str) and raw.strip().upper() in ('ABSENT', ABSENT_MARKER):
        return ABSENT
    return Breakdown.parse(raw)


@dataclass(frozen=True)
class Graded:
    subject_name: str
    teacher_id: int
    breakdown: Breakdown
    total_marks: int
    status: str

    kind: ClassVar[str] = 'graded'

    @property
    def total(self) -> int:
        return self.breakdown.total

    @property
    def percentage(self) -> int:
        return percentage(self.total, self.total_marks)

    def scores(self) -> Dict[str, int]:
        return self.breakdown.as_dict()


@dataclass(frozen=True)
class Absent:
    subject_name: str
    teacher_id: int
    total_marks: int

    kind: ClassVar[str] = 'absent'
    status: ClassVar[str] = ABSENT_STATUS
    total: ClassVar[int] = ABSENT_SENTINEL
    percentage: ClassVar[None] = None

    def scores(self) -> Dict[str, int]:
        return {c: ABSENT_SENTINEL for c in COMPONENTS}


ExamEntry = Union[Graded, Absent]


def build_entry(subject_name: str, teacher_id: int, scores: ScoreInput, policy) -> ExamEntry:
    """Create an entry for one subject, deriving total and status from the policy."""
    if scores is ABSENT:
        return Absent(subject_name=subject_name, teacher_id=teacher_id, total_marks=policy.total_marks)
    total = scores.total
    if total > policy.total_marks:
        raise ValidationError(
            f'Total {total} exceeds the maximum of {policy.total_marks} for {policy.name}', field='scores'
        )
    return Graded(
        subject_name=subject_name,
        teacher_id=teacher_id,
        breakdown=scores,
        total_marks=policy.total_marks,
        status=policy.status_for(total),
    )


@dataclass
class RecordSnapshot:
    """A detached copy of one student's record for an exam type and year."""
    id: Optional[int]
    student_id: int
    exam_type: str
    year: str
    version: int = 0
    entries: List[ExamEntry] = field(default_factory=list)

    @property
    def key(self) -> Tuple[int, str, str]:
        return (self.student_id, self.exam_type, self.year)

    def find(self, subject_name: str, teacher_id: int) -> Optional[int]:
        for idx, e in enumerate(self.entries):
            if e.subject_name == subject_name and e.teacher_id == teacher_id:
                return idx
        return None

    def put(self, entry: ExamEntry) -> bool:
        """Replace the entry for the same subject and teacher, or append. True if replaced."""
        idx = self.find(entry.subject_name, entry.teacher_id)
        if idx is None:
            self.entries.append(entry)
            return False
        self.entries[idx] = entry
        return True

    def remove(self, subject_name: str, teacher_id: int) -> Optional[ExamEntry]:
        idx = self.find(subject_name, teacher_id)
        if idx is None:
            return None
        return self.entries.pop(idx)
