from rest_framework import serializers

from academics.models import Student

from .domain import ABSENT_MARKER
from .models import ExamEntry, MarkRecord
from .services.aggregation import entry_dict


class StudentBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = ['id', 'roll_no', 'name', 'year', 'division']


class ExamEntrySerializer(serializers.ModelSerializer):
    subject = serializers.CharField(source='subject_name', read_only=True)
    scores = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()
    percentage = serializers.SerializerMethodField()

    class Meta:
        model = ExamEntry
        fields = ['id', 'subject', 'teacher', 'kind', 'scores', 'total', 'total_marks', 'status', 'percentage']

    def get_scores(self, obj):
        if obj.kind == 'absent':
            return ABSENT_MARKER
        return {'q1q2': obj.q1q2, 'q3q4': obj.q3q4, 'q5q6': obj.q5q6, 'q7q8': obj.q7q8}

    def get_total(self, obj):
        return ABSENT_MARKER if obj.kind == 'absent' else obj.total

    def get_percentage(self, obj):
        return obj.as_entry().percentage


class MarkRecordSerializer(serializers.ModelSerializer):
    student_detail = StudentBriefSerializer(source='student', read_only=True)
    entries = ExamEntrySerializer(many=True, read_only=True)

    class Meta:
        model = MarkRecord
        fields = ['id', 'student', 'student_detail', 'exam_type', 'year', 'version', 'entries', 'created_at', 'updated_at']
        read_only_fields = fields


class EntryUpdateSerializer(serializers.Serializer):
    subject = serializers.CharField()
    teacher = serializers.IntegerField(required=False)
    scores = serializers.JSONField(required=False)
    absent = serializers.BooleanField(required=False, default=False)
    # Pass the version you read to reject the update if someone saved in between
    version = serializers.IntegerField(required=False, min_value=0)

    def validate(self, attrs):
        if not attrs.get('absent') and attrs.get('scores') is None:
            raise serializers.ValidationError({'scores': 'scores are required unless the student is absent'})
        return attrs


def snapshot_data(snapshot):
    """JSON form of a RecordSnapshot returned by the services."""
    return {
        'id': snapshot.id,
        'student': snapshot.student_id,
        'exam_type': snapshot.exam_type,
        'year': snapshot.year,
        'version': snapshot.version,
        'entries': [entry_dict(e) for e in snapshot.entries],
    }


def batch_result_data(result):
    items = []
    for item in result.items:
        if item.ok:
            items.append({
                'index': item.index,
                'ok': True,
                'record': item.record.id,
                'created': item.created,
                'changed': item.changed,
                'entry': entry_dict(item.entry),
            })
        else:
            items.append({'index': item.index, 'ok': False, 'error': item.error.as_dict()})
    return {'saved': result.saved, 'failed': result.failed, 'results': items}
