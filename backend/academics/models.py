from django.db import models
from django.conf import settings


class Student(models.Model):
    roll_no = models.IntegerField()
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    # Class the student is enrolled in, e.g. year "First Year", division "A"
    year = models.CharField(max_length=30)
    division = models.CharField(max_length=10)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='student_profile')

    class Meta:
        ordering = ["year", "division", "roll_no", "id"]
        unique_together = ("year", "division", "roll_no")

    def __str__(self):
        return f"{self.roll_no} - {self.name} ({self.year} {self.division})"


class TeacherProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='teacher_profile')
    department = models.CharField(max_length=100, blank=True)
    # Set only for class teachers
    assigned_year = models.CharField(max_length=30, blank=True)
    assigned_division = models.CharField(max_length=10, blank=True)

    def __str__(self):
        return self.user.get_full_name() or self.user.username


class TeacherSubject(models.Model):
    """A subject a teacher grades for one class.
    For example: SE A, Physics, taught by Teacher X
    """
    teacher = models.ForeignKey(TeacherProfile, on_delete=models.CASCADE, related_name='subjects')
    name = models.CharField(max_length=100)
    year = models.CharField(max_length=30)
    division = models.CharField(max_length=10)
    semester = models.IntegerField(null=True, blank=True)

    class Meta:
        ordering = ["year", "division", "name"]
        unique_together = ("teacher", "name", "year", "division")

    def __str__(self):
        return f"{self.year} {self.division} {self.name} ({self.teacher})"
