import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounts.permissions import principal_from_user
from academics.models import Student, TeacherProfile, TeacherSubject
from marks.policy import ExamTypeTable
from marks.services.aggregation import AggregationEngine
from marks.services.updates import MarkUpdateEngine

User = get_user_model()

YEAR = 'SE'
DIVISION = 'A'

EXAM_TYPES = {
    'unit1': {'threshold': 12, 'total_marks': 30},
    'unit2': {'threshold': 12, 'total_marks': 30},
    'unit-test': {'threshold': 12, 'total_marks': 30, 'aliases': ['unitTest']},
    'term': {'threshold': 28, 'total_marks': 70},
    'prelim': {'threshold': 28, 'total_marks': 70, 'aliases': ['prelims']},
}


@pytest.fixture
def exam_types():
    return ExamTypeTable.from_mapping(EXAM_TYPES)


@pytest.fixture
def make_teacher(db):
    def _make(username, subjects=(), year=YEAR, division=DIVISION):
        user = User.objects.create_user(
            username=username, password='pw', role='teacher', first_name=username.title()
        )
        profile = TeacherProfile.objects.create(user=user, department='Science')
        for name in subjects:
            TeacherSubject.objects.create(teacher=profile, name=name, year=year, division=division)
        return user
    return _make


@pytest.fixture
def physics_teacher(make_teacher):
    return make_teacher('physics', ['Physics'])


@pytest.fixture
def maths_teacher(make_teacher):
    return make_teacher('maths', ['Mathematics'])


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='office', password='pw', role='admin')


@pytest.fixture
def student_user(db):
    return User.objects.create_user(username='pupil', password='pw', role='student')


@pytest.fixture
def make_student(db):
    def _make(roll_no, name, year=YEAR, division=DIVISION, user=None):
        return Student.objects.create(roll_no=roll_no, name=name, year=year, division=division, user=user)
    return _make


@pytest.fixture
def students(make_student):
    """Three students of SE A, created out of roll order."""
    return [
        make_student(2, 'Bilal Khan'),
        make_student(1, 'Asha Patil'),
        make_student(3, 'Chen Li'),
    ]


@pytest.fixture
def principal():
    return principal_from_user


@pytest.fixture
def engine(exam_types):
    return MarkUpdateEngine(exam_types=exam_types)


@pytest.fixture
def aggregation(exam_types):
    return AggregationEngine(exam_types=exam_types)


@pytest.fixture
def make_item():
    def _make(student, teacher, subject='Physics', exam_type='unit1', scores=(5, 5, 5, 5), absent=False, year=YEAR):
        item = {
            'student': student.id,
            'teacher': teacher.id,
            'subject': subject,
            'exam_type': exam_type,
            'year': year,
        }
        if absent:
            item['absent'] = True
        else:
            item['scores'] = dict(zip(('q1q2', 'q3q4', 'q5q6', 'q7q8'), scores))
        return item
    return _make


@pytest.fixture
def api_client():
    return APIClient()
