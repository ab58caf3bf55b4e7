"""Report view models, PDF/XLSX serializers and the render runner."""
import io
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone as dt_timezone

import pytest
from openpyxl import load_workbook
from pypdf import PdfReader

from marks.exceptions import ReportTimeoutError, ValidationError
from marks.reports.pdf import render_pdf
from marks.reports.runner import render_report
from marks.reports.viewmodel import (
    ReportViewModel, SummaryItem, build_class_report, build_subject_report, check_cancelled, format_value,
    ROLL_NO, STUDENT_NAME, TOTAL, RenderCancelled,
)
from marks.reports.xlsx import render_xlsx

GENERATED = datetime(2024, 3, 1, 9, 30, tzinfo=dt_timezone.utc)


@pytest.fixture
def submit(engine, admin_user, principal):
    def _submit(*items):
        result = engine.submit_batch(list(items), principal(admin_user))
        assert result.failed == 0, [i.error.reason for i in result.errors]
    return _submit


@pytest.fixture
def marked_class(students, physics_teacher, maths_teacher, make_item, submit):
    """Roll 1 absent in Physics, roll 2 graded 18, roll 3 without Physics marks."""
    by_roll = {s.roll_no: s for s in students}
    submit(
        make_item(by_roll[1], physics_teacher, absent=True),
        make_item(by_roll[2], physics_teacher, scores=(6, 4, 4, 4)),
        make_item(by_roll[1], maths_teacher, subject='Mathematics', scores=(5, 5, 5, 6)),
        make_item(by_roll[3], maths_teacher, subject='Mathematics', scores=(1, 1, 1, 1)),
    )
    return by_roll


def summary(vm):
    return {item.label: item.value for item in vm.summary}


def pdf_text(data):
    reader = PdfReader(io.BytesIO(data))
    return [page.extract_text() for page in reader.pages]


def xlsx_summary(data):
    ws = load_workbook(io.BytesIO(data)).active
    out = {}
    for row in ws.iter_rows(values_only=True):
        if row and len(row) >= 2 and row[0] is not None and row[1] is not None and isinstance(row[0], str):
            out[row[0]] = row[1]
    return out


def simple_vm(n_rows):
    rows = tuple((i, f'Student {i:02d}', i * 2) for i in range(1, n_rows + 1))
    return ReportViewModel(
        kind='class',
        title='SE A report',
        subtitle='Class: SE A',
        columns=(ROLL_NO, STUDENT_NAME, TOTAL),
        rows=rows,
        summary=(SummaryItem('Grand Total', sum(r[2] for r in rows)), SummaryItem('Class Average', 7.5)),
        generated_at=GENERATED,
    )


# ============================================================================
# View models
# ============================================================================

@pytest.mark.django_db
class TestSubjectReport:

    def test_rows_follow_roll_order_with_markers(self, aggregation, marked_class):
        vm = build_subject_report(aggregation, 'SE', 'A', 'Physics', 'unit1', generated_at=GENERATED)

        assert vm.header == ['Roll No', 'Student Name', 'Q1/Q2', 'Q3/Q4', 'Q5/Q6', 'Q7/Q8', 'Total', 'Status']
        assert vm.rows[0] == (1, 'Asha Patil', 'AB', 'AB', 'AB', 'AB', 'AB', 'Absent')
        assert vm.rows[1] == (2, 'Bilal Khan', 6, 4, 4, 4, 18, 'Pass')
        assert vm.rows[2] == (3, 'Chen Li', '', '', '', '', '', '-')

    def test_summary_excludes_absent_from_average(self, aggregation, marked_class):
        vm = build_subject_report(aggregation, 'SE', 'A', 'Physics', 'unit1')

        assert summary(vm) == {
            'Students': 3, 'Graded': 1, 'Absent': 1, 'Pass': 1, 'Fail': 0, 'Grand Total': 18, 'Average': 18.0,
        }

    def test_average_matches_dashboard(self, aggregation, marked_class):
        vm = build_subject_report(aggregation, 'SE', 'A', 'Mathematics', 'unit1')
        dashboard = aggregation.class_dashboard('SE', 'A')
        assert summary(vm)['Average'] == dashboard.subject_performance['Mathematics'].average


@pytest.mark.django_db
class TestClassReport:

    def test_subject_columns_sorted_with_ab_and_blank_cells(self, aggregation, marked_class):
        vm = build_class_report(aggregation, 'SE', 'A', exam_type='unit1', generated_at=GENERATED)

        assert vm.header == ['Roll No', 'Student Name', 'Mathematics', 'Physics', 'Total']
        assert vm.rows == (
            (1, 'Asha Patil', 21, 'AB', 21),
            (2, 'Bilal Khan', '', 18, 18),
            (3, 'Chen Li', 4, '', 4),
        )

    def test_summary_uses_dashboard_arithmetic(self, aggregation, marked_class):
        vm = build_class_report(aggregation, 'SE', 'A')
        perf = aggregation.class_dashboard('SE', 'A').subject_performance

        values = summary(vm)
        assert values['Mathematics Average'] == perf['Mathematics'].average == 12.5
        assert values['Physics Average'] == perf['Physics'].average == 18.0
        assert values['Grand Total'] == 43
        assert values['Class Average'] == 14.33

    def test_missing_roster_fails_whole_report(self, aggregation, students):
        from marks.exceptions import NotFoundError
        with pytest.raises(NotFoundError):
            build_class_report(aggregation, 'BE', 'C')


class TestFormatting:

    def test_format_value(self):
        assert format_value(18.0) == '18.00'
        assert format_value(14.333) == '14.33'
        assert format_value(7) == '7'
        assert format_value('AB') == 'AB'
        assert format_value(None) == ''

    def test_filename_is_slugged_title(self):
        assert simple_vm(1).filename == 'se_a_report'


# ============================================================================
# Serializers
# ============================================================================

class TestPdf:

    def test_rows_split_into_pages_with_header_on_each(self):
        out = io.BytesIO()
        render_pdf(simple_vm(5), out, rows_per_page=2)

        pages = pdf_text(out.getvalue())
        assert len(pages) == 3
        for page in pages:
            assert 'Roll No' in page
            assert 'Generated: ' in page
        assert 'Page 3' in pages[2]
        assert 'Student 05' in pages[2]
        assert 'Student 03' not in pages[0]

    def test_summary_is_printed_after_table(self):
        out = io.BytesIO()
        render_pdf(simple_vm(3), out, rows_per_page=30)

        text = pdf_text(out.getvalue())[-1]
        assert 'Grand Total: 12' in text
        assert 'Class Average: 7.50' in text

    def test_cancel_aborts_rendering(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(RenderCancelled):
            render_pdf(simple_vm(3), io.BytesIO(), cancel=cancel)


class TestXlsx:

    def test_layout_and_column_widths(self):
        out = io.BytesIO()
        render_xlsx(simple_vm(2), out)

        ws = load_workbook(io.BytesIO(out.getvalue())).active
        assert ws['A1'].value == 'SE A report'
        assert [c.value for c in ws[3]] == ['Roll No', 'Student Name', 'Total']
        assert ws['A3'].font.bold
        assert [c.value for c in ws[4]] == [1, 'Student 01', 2]
        assert ws.column_dimensions['B'].width == 30
        assert ws.freeze_panes == 'A4'

    def test_cancel_aborts_rendering(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(RenderCancelled):
            render_xlsx(simple_vm(3), io.BytesIO(), cancel=cancel)


PARITY_REPORTS = {
    'subject': lambda agg: build_subject_report(agg, 'SE', 'A', 'Physics', 'unit1', generated_at=GENERATED),
    'class': lambda agg: build_class_report(agg, 'SE', 'A', generated_at=GENERATED),
}


def pdf_table_rows(text, vm):
    """Cells of each student line in the PDF, keyed by roll number."""
    lines = [line.split() for line in text.splitlines()]
    out = {}
    for row in vm.rows:
        lead = [str(row[0])] + row[1].split()
        matches = [tokens[len(lead):] for tokens in lines if tokens[:len(lead)] == lead]
        assert len(matches) == 1, (lead, matches)
        out[row[0]] = matches[0]
    return out


@pytest.mark.django_db
class TestParity:

    @pytest.mark.parametrize('kind', sorted(PARITY_REPORTS))
    def test_pdf_and_workbook_show_same_numbers(self, aggregation, marked_class, kind):
        vm = PARITY_REPORTS[kind](aggregation)
        pdf_out, xlsx_out = io.BytesIO(), io.BytesIO()
        render_pdf(vm, pdf_out)
        render_xlsx(vm, xlsx_out)

        text = '\n'.join(pdf_text(pdf_out.getvalue()))
        cells = xlsx_summary(xlsx_out.getvalue())
        lines = [line.strip() for line in text.splitlines()]
        for item in vm.summary:
            assert f'{item.label}: {format_value(item.value)}' in lines
            assert cells[item.label] == item.value

        pdf_rows = pdf_table_rows(text, vm)
        ws = load_workbook(io.BytesIO(xlsx_out.getvalue())).active
        sheet_rows = ws.iter_rows(min_row=4, max_row=3 + len(vm.rows), max_col=len(vm.columns), values_only=True)
        for row, sheet_row in zip(vm.rows, sheet_rows):
            assert ['' if v is None else v for v in sheet_row] == list(row)
            assert pdf_rows[row[0]] == [format_value(v) for v in row[2:] if format_value(v)]

    def test_absent_student_shows_marker_in_both_formats(self, aggregation, marked_class):
        vm = PARITY_REPORTS['subject'](aggregation)
        pdf_out, xlsx_out = io.BytesIO(), io.BytesIO()
        render_pdf(vm, pdf_out)
        render_xlsx(vm, xlsx_out)

        assert pdf_table_rows('\n'.join(pdf_text(pdf_out.getvalue())), vm)[1] == ['AB'] * 5 + ['Absent']
        ws = load_workbook(io.BytesIO(xlsx_out.getvalue())).active
        assert [c.value for c in ws[4]][2:8] == ['AB'] * 5 + ['Absent']
        assert xlsx_summary(xlsx_out.getvalue())['Absent'] == 1


# ============================================================================
# Runner
# ============================================================================

class TestRunner:

    def test_renders_pdf_into_rewound_file(self):
        out = render_report(simple_vm(3), 'pdf')
        try:
            assert out.read(5) == b'%PDF-'
        finally:
            out.close()

    def test_renders_xlsx_as_zip(self):
        out = render_report(simple_vm(3), 'xlsx')
        try:
            assert out.read(2) == b'PK'
        finally:
            out.close()

    def test_unknown_format_rejected(self):
        with pytest.raises(ValidationError):
            render_report(simple_vm(1), 'docx')

    def test_timeout_sets_cancel_and_raises(self):
        seen = {}
        started = threading.Event()

        def slow(vm, fmt, out, cancel):
            seen['cancel'] = cancel
            started.set()
            while True:
                check_cancelled(cancel)
                time.sleep(0.01)

        with ThreadPoolExecutor(max_workers=1) as pool:
            with pytest.raises(ReportTimeoutError) as exc:
                render_report(simple_vm(1), 'pdf', timeout=0.1, executor=pool, serializer=slow)

        assert exc.value.kind == 'timeout'
        assert started.is_set()
        assert seen['cancel'].is_set()
