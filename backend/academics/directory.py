"""Student and teacher directories consumed by the marks subsystem.

The marks services only see the frozen ``StudentInfo``/``TeacherInfo`` values
returned here, never the ORM rows, so any other source of rosters can be
plugged in by passing objects with the same methods.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import Student, TeacherProfile


@dataclass(frozen=True)
class StudentInfo:
    id: int
    roll_no: int
    name: str
    year: str
    division: str


@dataclass(frozen=True)
class ClassRef:
    year: str
    division: str


@dataclass(frozen=True)
class SubjectAssignment:
    name: str
    year: str
    division: str


@dataclass(frozen=True)
class TeacherInfo:
    id: int
    name: str
    department: str
    assigned_class: Optional[ClassRef]
    subjects: Tuple[SubjectAssignment, ...]

    def teaches(self, subject_name: str, year: str, division: str) -> bool:
        return any(
            s.name == subject_name and s.year == year and s.division == division
            for s in self.subjects
        )

    def classes_for(self, subject_name: str) -> Tuple[ClassRef, ...]:
        return tuple(ClassRef(s.year, s.division) for s in self.subjects if s.name == subject_name)

    def is_class_teacher_of(self, year: str, division: str) -> bool:
        return self.assigned_class == ClassRef(year, division)

    def works_with_class(self, year: str, division: str) -> bool:
        """Class teacher of the class, or teaches it at least one subject."""
        if self.is_class_teacher_of(year, division):
            return True
        return any(s.year == year and s.division == division for s in self.subjects)


def _student_info(s: Student) -> StudentInfo:
    return StudentInfo(id=s.id, roll_no=s.roll_no, name=s.name, year=s.year, division=s.division)


class StudentDirectory:
    def lookup_student(self, student_id) -> Optional[StudentInfo]:
        s = Student.objects.filter(pk=student_id).first()
        return _student_info(s) if s else None

    def list_students(self, year: str, division: str) -> List[StudentInfo]:
        qs = Student.objects.filter(year=year, division=division).order_by('roll_no', 'id')
        return [_student_info(s) for s in qs]


class TeacherDirectory:
    def lookup_teacher(self, teacher_id) -> Optional[TeacherInfo]:
        """Resolve a teacher by user id (the id carried on mark entries)."""
        prof = (
            TeacherProfile.objects
            .select_related('user')
            .prefetch_related('subjects')
            .filter(user_id=teacher_id)
            .first()
        )
        if prof is None:
            return None
        assigned = None
        if prof.assigned_year and prof.assigned_division:
            assigned = ClassRef(prof.assigned_year, prof.assigned_division)
        return TeacherInfo(
            id=prof.user_id,
            name=prof.user.get_full_name() or prof.user.username,
            department=prof.department,
            assigned_class=assigned,
            subjects=tuple(
                SubjectAssignment(name=s.name, year=s.year, division=s.division)
                for s in prof.subjects.all()
            ),
        )
