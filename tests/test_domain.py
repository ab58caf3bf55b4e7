"""Entry variants, score parsing and the exam-type table."""
import pytest

from marks.domain import (
    ABSENT, ABSENT_SENTINEL, Absent, Breakdown, Graded, RecordSnapshot, build_entry, parse_scores,
    percentage, round_half_up,
)
from marks.exceptions import ValidationError
from marks.policy import ExamTypePolicy, ExamTypeTable


# ============================================================================
# Exam-type table
# ============================================================================

class TestExamTypeTable:

    def test_when_alias_given_then_resolves_to_canonical(self, exam_types):
        assert exam_types.canonical('unitTest') == 'unit-test'
        assert exam_types.canonical('prelims') == 'prelim'
        assert exam_types.canonical('term') == 'term'

    def test_when_unknown_exam_type_then_validation_error(self, exam_types):
        with pytest.raises(ValidationError) as exc:
            exam_types.resolve('midterm')
        assert exc.value.kind == 'validation'
        assert exc.value.field == 'exam_type'

    def test_when_name_only_looks_like_unit_then_still_rejected(self, exam_types):
        assert 'unit3' not in exam_types
        with pytest.raises(ValidationError):
            exam_types.resolve('unit3')

    def test_threshold_depends_only_on_exam_type(self, exam_types):
        assert exam_types.threshold('unit1') == 12
        assert exam_types.threshold('unitTest') == 12
        assert exam_types.threshold('term') == 28

    def test_when_alias_defined_twice_then_rejected(self):
        with pytest.raises(ValueError):
            ExamTypeTable([
                ExamTypePolicy('unit1', 12, 30, aliases=('u',)),
                ExamTypePolicy('unit2', 12, 30, aliases=('u',)),
            ])

    def test_when_threshold_above_total_then_rejected(self):
        with pytest.raises(ValueError):
            ExamTypeTable([ExamTypePolicy('odd', 40, 30)])

    def test_settings_table_has_default_exam_types(self, settings):
        table = ExamTypeTable.from_settings()
        assert table.canonical('reunitTest') == 're-unit-test'
        assert table.total_marks('re-prelim') == 70


# ============================================================================
# Entries
# ============================================================================

class TestBuildEntry:

    def test_unit_exam_total_above_threshold_passes(self, exam_types):
        entry = build_entry('Physics', 1, Breakdown(10, 10, 0, 0), exam_types.resolve('unit1'))

        assert isinstance(entry, Graded)
        assert entry.total == 20
        assert entry.status == 'Pass'
        assert entry.total_marks == 30

    def test_term_exam_total_below_threshold_fails(self, exam_types):
        entry = build_entry('Physics', 1, Breakdown(5, 5, 5, 5), exam_types.resolve('term'))

        assert entry.total == 20
        assert entry.status == 'Fail'

    def test_total_equal_to_threshold_passes(self, exam_types):
        entry = build_entry('Physics', 1, Breakdown(7, 7, 7, 7), exam_types.resolve('term'))
        assert entry.status == 'Pass'

    def test_absent_entry_uses_sentinel_and_has_no_percentage(self, exam_types):
        entry = build_entry('Physics', 1, ABSENT, exam_types.resolve('unit1'))

        assert isinstance(entry, Absent)
        assert entry.total == ABSENT_SENTINEL
        assert entry.status == 'Absent'
        assert entry.percentage is None
        assert set(entry.scores().values()) == {ABSENT_SENTINEL}

    def test_when_total_exceeds_total_marks_then_rejected(self, exam_types):
        with pytest.raises(ValidationError):
            build_entry('Physics', 1, Breakdown(10, 10, 10, 1), exam_types.resolve('unit1'))

    def test_percentage_rounds_half_up(self):
        assert percentage(14, 30) == 47
        assert percentage(1, 8) == 13
        assert percentage(20, 30) == 67

    def test_round_half_up_to_two_places(self):
        assert round_half_up(2.675) == 2.68
        assert round_half_up(18) == 18.0


class TestParseScores:

    def test_accepts_integer_strings_from_spreadsheet_paste(self):
        scores = parse_scores({'q1q2': '7', 'q3q4': ' 8 ', 'q5q6': 0, 'q7q8': 6.0})
        assert scores == Breakdown(7, 8, 0, 6)

    @pytest.mark.parametrize('bad', [-1, '-2', 7.5, True, None, 'seven', '', '--5', '²', '1e2'])
    def test_rejects_invalid_component(self, bad):
        with pytest.raises(ValidationError) as exc:
            parse_scores({'q1q2': bad, 'q3q4': 1, 'q5q6': 1, 'q7q8': 1})
        assert exc.value.field == 'q1q2'

    def test_missing_component_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_scores({'q1q2': 1, 'q3q4': 1, 'q5q6': 1})
        assert 'q7q8' in exc.value.reason

    @pytest.mark.parametrize('raw', ['ABSENT', 'absent', 'AB'])
    def test_absent_markers(self, raw):
        assert parse_scores(raw) is ABSENT

    def test_non_mapping_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_scores([1, 2, 3, 4])


class TestRecordSnapshot:

    def test_put_replaces_same_subject_and_teacher(self):
        snap = RecordSnapshot(id=None, student_id=1, exam_type='unit1', year='SE')
        first = Graded('Physics', 1, Breakdown(1, 1, 1, 1), 30, 'Fail')
        second = Graded('Physics', 1, Breakdown(5, 5, 5, 5), 30, 'Pass')
        other_teacher = Graded('Physics', 2, Breakdown(2, 2, 2, 2), 30, 'Fail')

        assert snap.put(first) is False
        assert snap.put(other_teacher) is False
        assert snap.put(second) is True
        assert snap.entries == [second, other_teacher]

    def test_remove_returns_none_when_missing(self):
        snap = RecordSnapshot(id=None, student_id=1, exam_type='unit1', year='SE')
        assert snap.remove('Physics', 1) is None
