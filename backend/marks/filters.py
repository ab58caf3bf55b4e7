import django_filters

from .models import MarkRecord
from .policy import ExamTypeTable


class MarkRecordFilter(django_filters.FilterSet):
    student = django_filters.NumberFilter(field_name='student_id')
    exam_type = django_filters.CharFilter(method='filter_exam_type')
    year = django_filters.CharFilter(field_name='year')
    division = django_filters.CharFilter(field_name='student__division')
    subject = django_filters.CharFilter(field_name='entries__subject_name', distinct=True)
    teacher = django_filters.NumberFilter(field_name='entries__teacher_id', distinct=True)

    class Meta:
        model = MarkRecord
        fields = ['student', 'exam_type', 'year', 'division', 'subject', 'teacher']

    def filter_exam_type(self, queryset, name, value):
        # Old clients still send aliases such as "prelims"
        table = ExamTypeTable.from_settings()
        if value in table:
            value = table.canonical(value)
        return queryset.filter(exam_type=value)
