from django.contrib import admin
from .models import Student, TeacherProfile, TeacherSubject


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("id", "roll_no", "name", "year", "division", "email")
    list_filter = ("year", "division")
    search_fields = ("name", "email")


class TeacherSubjectInline(admin.TabularInline):
    model = TeacherSubject
    extra = 0


@admin.register(TeacherProfile)
class TeacherProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "department", "assigned_year", "assigned_division")
    search_fields = ("user__username", "user__first_name", "user__last_name", "department")
    inlines = [TeacherSubjectInline]
