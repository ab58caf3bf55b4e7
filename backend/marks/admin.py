from django.contrib import admin

from .models import ExamEntry, MarkRecord


class ExamEntryInline(admin.TabularInline):
    model = ExamEntry
    extra = 0
    fields = ('subject_name', 'teacher', 'kind', 'q1q2', 'q3q4', 'q5q6', 'q7q8', 'total', 'total_marks', 'status', 'position')
    readonly_fields = ('total', 'status')


@admin.register(MarkRecord)
class MarkRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'exam_type', 'year', 'version', 'updated_at')
    list_filter = ('exam_type', 'year', 'student__division')
    search_fields = ('student__name', 'student__roll_no')
    inlines = [ExamEntryInline]


@admin.register(ExamEntry)
class ExamEntryAdmin(admin.ModelAdmin):
    list_display = ('subject_name', 'record', 'teacher', 'kind', 'total', 'status')
    list_filter = ('kind', 'status', 'subject_name')
