"""The tabular view model shared by the PDF and XLSX serializers.

All arithmetic happens while the view model is built. The serializers only
lay out the values they are given, which is what keeps the two formats
numerically identical.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from django.utils import timezone

from ..domain import ABSENT_MARKER, COMPONENT_LABELS, COMPONENTS, Graded, round_half_up
from ..services.aggregation import Tally, tally_by

SUBJECT = 'subject'
CLASS = 'class'
KINDS = (SUBJECT, CLASS)

NO_MARKS = '-'


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    # width in points for the PDF and in characters for the workbook
    width: float
    chars: int
    numeric: bool = True


@dataclass(frozen=True)
class SummaryItem:
    label: str
    value: object


@dataclass(frozen=True)
class ReportViewModel:
    kind: str
    title: str
    subtitle: str
    columns: Tuple[Column, ...]
    rows: Tuple[tuple, ...]
    summary: Tuple[SummaryItem, ...]
    generated_at: datetime

    @property
    def header(self) -> List[str]:
        return [c.label for c in self.columns]

    def column_index(self, key) -> int:
        for i, c in enumerate(self.columns):
            if c.key == key:
                return i
        raise KeyError(key)

    @property
    def filename(self) -> str:
        slug = '_'.join(self.title.lower().split())
        return ''.join(ch for ch in slug if ch.isalnum() or ch in '_-') or 'report'


ROLL_NO = Column('roll_no', 'Roll No', 60, 10)
STUDENT_NAME = Column('name', 'Student Name', 150, 30, numeric=False)
TOTAL = Column('total', 'Total', 60, 15)


def format_value(value) -> str:
    """Text used for a cell in the PDF. Floats always show two decimals."""
    if value is None:
        return ''
    if isinstance(value, float):
        return f'{value:.2f}'
    return str(value)


def _average(tally: Optional[Tally]):
    avg = tally.average if tally else None
    return NO_MARKS if avg is None else avg


def build_subject_report(aggregation, year, division, subject_name, exam_type, generated_at=None) -> ReportViewModel:
    """One row per student of the class for a single subject and exam type."""
    exam_type = aggregation.exam_types.canonical(exam_type)
    sheet = aggregation.class_sheet(year, division, exam_type=exam_type, subject_name=subject_name)

    columns = (ROLL_NO, STUDENT_NAME) + tuple(
        Column(c, COMPONENT_LABELS[c], 60, 15) for c in COMPONENTS
    ) + (TOTAL, Column('status', 'Status', 60, 15, numeric=False))

    rows, picked = [], []
    for line in sheet:
        if not line.entries:
            rows.append((line.student.roll_no, line.student.name) + ('',) * len(COMPONENTS) + ('', NO_MARKS))
            continue
        # One entry per student, the first teacher's if several graded the subject
        entry = line.entries[0][1]
        picked.append(('all', entry))
        if isinstance(entry, Graded):
            cells = tuple(entry.scores()[c] for c in COMPONENTS) + (entry.total,)
        else:
            cells = (ABSENT_MARKER,) * (len(COMPONENTS) + 1)
        rows.append((line.student.roll_no, line.student.name) + cells + (entry.status,))

    tally = tally_by(picked).get('all')
    statuses = [e.status for _, e in picked]
    summary = (
        SummaryItem('Students', len(rows)),
        SummaryItem('Graded', tally.count if tally else 0),
        SummaryItem('Absent', statuses.count('Absent')),
        SummaryItem('Pass', statuses.count('Pass')),
        SummaryItem('Fail', statuses.count('Fail')),
        SummaryItem('Grand Total', tally.total if tally else 0),
        SummaryItem('Average', _average(tally)),
    )
    return ReportViewModel(
        kind=SUBJECT,
        title=f'{subject_name} {exam_type} marks',
        subtitle=f'Class: {year} {division}',
        columns=columns,
        rows=tuple(rows),
        summary=summary,
        generated_at=generated_at or timezone.now(),
    )


def build_class_report(aggregation, year, division, exam_type=None, generated_at=None) -> ReportViewModel:
    """One row per student with a column per subject and the overall total."""
    if exam_type:
        exam_type = aggregation.exam_types.canonical(exam_type)
    sheet = aggregation.class_sheet(year, division, exam_type=exam_type)

    pairs = [(e.subject_name, e) for line in sheet for _, e in line.entries]
    subjects = sorted({name for name, _ in pairs})
    subject_tallies = tally_by(pairs)
    columns = (ROLL_NO, STUDENT_NAME) + tuple(Column(f'subject:{s}', s, 60, 15) for s in subjects) + (TOTAL,)

    rows, row_totals = [], []
    for line in sheet:
        mine = tally_by((e.subject_name, e) for _, e in line.entries)
        seen = {e.subject_name for _, e in line.entries}
        cells = []
        for s in subjects:
            if s in mine:
                cells.append(mine[s].total)
            elif s in seen:
                cells.append(ABSENT_MARKER)
            else:
                cells.append('')
        if mine:
            total = sum(t.total for t in mine.values())
            row_totals.append(total)
        else:
            total = NO_MARKS
        rows.append((line.student.roll_no, line.student.name) + tuple(cells) + (total,))

    summary = tuple(SummaryItem(f'{s} Average', _average(subject_tallies.get(s))) for s in subjects)
    class_avg = round_half_up(sum(row_totals) / len(row_totals)) if row_totals else NO_MARKS
    summary += (
        SummaryItem('Grand Total', sum(row_totals)),
        SummaryItem('Class Average', class_avg),
    )
    scope = exam_type or 'all exams'
    return ReportViewModel(
        kind=CLASS,
        title=f'{year} {division} {scope} report',
        subtitle=f'Class: {year} {division}',
        columns=columns,
        rows=tuple(rows),
        summary=summary,
        generated_at=generated_at or timezone.now(),
    )


class RenderCancelled(Exception):
    """Raised inside a serializer once its cancel event has been set."""


def check_cancelled(cancel):
    if cancel is not None and cancel.is_set():
        raise RenderCancelled()
