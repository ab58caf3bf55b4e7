from django.conf import settings
from django.db import models

from .domain import Absent, Breakdown, Graded


class MarkRecord(models.Model):
    """All of one student's subject entries for one exam type in one year."""
    student = models.ForeignKey('academics.Student', on_delete=models.CASCADE, related_name='mark_records')
    # Always the canonical exam type name, aliases are resolved before saving
    exam_type = models.CharField(max_length=50)
    year = models.CharField(max_length=30)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['student_id', 'exam_type', 'year', 'id']
        unique_together = ('student', 'exam_type', 'year')
        indexes = [models.Index(fields=['exam_type', 'year'], name='marks_record_type_year_idx')]

    def __str__(self):
        return f"{self.student_id} {self.exam_type} {self.year}"


class ExamEntry(models.Model):
    KIND_CHOICES = (
        ('graded', 'Graded'),
        ('absent', 'Absent'),
    )
    STATUS_CHOICES = (
        ('Pass', 'Pass'),
        ('Fail', 'Fail'),
        ('Absent', 'Absent'),
    )

    record = models.ForeignKey(MarkRecord, on_delete=models.CASCADE, related_name='entries')
    subject_name = models.CharField(max_length=100)
    teacher = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='exam_entries')
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default='graded')
    # Absent entries store -1 in every component and in total
    q1q2 = models.IntegerField(default=0)
    q3q4 = models.IntegerField(default=0)
    q5q6 = models.IntegerField(default=0)
    q7q8 = models.IntegerField(default=0)
    total = models.IntegerField(default=0)
    total_marks = models.PositiveIntegerField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['record_id', 'position', 'id']
        unique_together = ('record', 'subject_name', 'teacher')
        indexes = [models.Index(fields=['subject_name'], name='marks_entry_subject_idx')]

    def __str__(self):
        return f"{self.subject_name}: {self.total} ({self.status})"

    def as_entry(self):
        if self.kind == 'absent':
            return Absent(subject_name=self.subject_name, teacher_id=self.teacher_id, total_marks=self.total_marks)
        return Graded(
            subject_name=self.subject_name,
            teacher_id=self.teacher_id,
            breakdown=Breakdown(self.q1q2, self.q3q4, self.q5q6, self.q7q8),
            total_marks=self.total_marks,
            status=self.status,
        )

    @staticmethod
    def fields_for(entry, position):
        """Column values for a domain entry at a given position."""
        scores = entry.scores()
        return {
            'kind': entry.kind,
            'q1q2': scores['q1q2'],
            'q3q4': scores['q3q4'],
            'q5q6': scores['q5q6'],
            'q7q8': scores['q7q8'],
            'total': entry.total,
            'total_marks': entry.total_marks,
            'status': entry.status,
            'position': position,
        }
