"""The seed_marks management command."""
import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from academics.models import Student, TeacherSubject
from marks.models import ExamEntry, MarkRecord

pytestmark = pytest.mark.django_db


def test_seeds_class_through_update_engine():
    call_command('seed_marks', '--students', '4', '--subjects', 'Physics,Chemistry', '--exam-types', 'unit1,prelims')

    assert Student.objects.filter(year='SE', division='A').count() == 4
    assert TeacherSubject.objects.filter(year='SE', division='A').count() == 2
    assert set(MarkRecord.objects.values_list('exam_type', flat=True)) == {'unit1', 'prelim'}
    assert ExamEntry.objects.count() == 4 * 2 * 2


def test_rerun_is_idempotent():
    call_command('seed_marks', '--students', '3', '--subjects', 'Physics')
    call_command('seed_marks', '--students', '3', '--subjects', 'Physics')

    assert Student.objects.count() == 3
    assert ExamEntry.objects.count() == 3 * 2


def test_rejects_bad_absent_rate():
    with pytest.raises(CommandError):
        call_command('seed_marks', '--absent-rate', '2')
