from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='MarkRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('exam_type', models.CharField(max_length=50)),
                ('year', models.CharField(max_length=30)),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='mark_records', to='academics.student')),
            ],
            options={
                'ordering': ['student_id', 'exam_type', 'year', 'id'],
                'indexes': [models.Index(fields=['exam_type', 'year'], name='marks_record_type_year_idx')],
                'unique_together': {('student', 'exam_type', 'year')},
            },
        ),
        migrations.CreateModel(
            name='ExamEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('subject_name', models.CharField(max_length=100)),
                ('kind', models.CharField(choices=[('graded', 'Graded'), ('absent', 'Absent')], default='graded', max_length=10)),
                ('q1q2', models.IntegerField(default=0)),
                ('q3q4', models.IntegerField(default=0)),
                ('q5q6', models.IntegerField(default=0)),
                ('q7q8', models.IntegerField(default=0)),
                ('total', models.IntegerField(default=0)),
                ('total_marks', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('Pass', 'Pass'), ('Fail', 'Fail'), ('Absent', 'Absent')], max_length=10)),
                ('position', models.PositiveIntegerField(default=0)),
                ('record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='entries', to='marks.markrecord')),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='exam_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['record_id', 'position', 'id'],
                'indexes': [models.Index(fields=['subject_name'], name='marks_entry_subject_idx')],
                'unique_together': {('record', 'subject_name', 'teacher')},
            },
        ),
    ]
