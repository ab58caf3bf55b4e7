import random

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from faker import Faker

from accounts.permissions import Principal
from academics.models import Student, TeacherProfile, TeacherSubject
from marks.models import MarkRecord
from marks.policy import ExamTypeTable
from marks.services.updates import MarkUpdateEngine

User = get_user_model()

DEFAULT_SUBJECTS = ['Mathematics', 'Physics', 'Chemistry', 'English']


class Command(BaseCommand):
    help = 'Seed a demo class with teachers, students and marks'

    def add_arguments(self, parser):
        parser.add_argument('--year', type=str, default='SE', help='Class year (default: SE)')
        parser.add_argument('--division', type=str, default='A', help='Class division (default: A)')
        parser.add_argument('--students', type=int, default=30, help='Number of students (default: 30)')
        parser.add_argument(
            '--subjects',
            type=str,
            default=','.join(DEFAULT_SUBJECTS),
            help='Comma-separated subject names, one teacher is created per subject',
        )
        parser.add_argument(
            '--exam-types',
            type=str,
            default='unit1,term',
            help='Comma-separated exam types to record marks for (default: unit1,term)',
        )
        parser.add_argument(
            '--absent-rate',
            type=float,
            default=0.05,
            help='Share of entries recorded as absent (default: 0.05)',
        )
        parser.add_argument('--clear', action='store_true', help='Delete existing marks for the class first')
        parser.add_argument('--seed', type=int, default=42, help='Random seed (default: 42)')

    def handle(self, *args, **options):
        fake = Faker()
        Faker.seed(options['seed'])
        rng = random.Random(options['seed'])

        year = options['year']
        division = options['division']
        subjects = [s.strip() for s in options['subjects'].split(',') if s.strip()]
        if not subjects:
            raise CommandError('--subjects must name at least one subject')
        table = ExamTypeTable.from_settings()
        exam_types = [table.canonical(t.strip()) for t in options['exam_types'].split(',') if t.strip()]
        absent_rate = options['absent_rate']
        if not 0 <= absent_rate <= 1:
            raise CommandError('--absent-rate must be between 0 and 1')

        if options['clear']:
            self.stdout.write(self.style.WARNING(f'Clearing marks for {year} {division}...'))
            MarkRecord.objects.filter(student__year=year, student__division=division).delete()

        # Teachers, one per subject
        teacher_ids = {}
        for subject in subjects:
            username = f"{subject.lower().replace(' ', '_')}_{year.lower()}_{division.lower()}"
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    'first_name': fake.first_name(),
                    'last_name': fake.last_name(),
                    'email': f'{username}@example.com',
                    'role': 'teacher',
                },
            )
            if created:
                user.set_password('teacher123')
                user.save()
            profile, _ = TeacherProfile.objects.get_or_create(user=user, defaults={'department': subject})
            TeacherSubject.objects.get_or_create(teacher=profile, name=subject, year=year, division=division)
            teacher_ids[subject] = user.id
        self.stdout.write(self.style.SUCCESS(f'✓ {len(teacher_ids)} teachers ready'))

        # Students
        existing = set(Student.objects.filter(year=year, division=division).values_list('roll_no', flat=True))
        created_students = 0
        for roll_no in range(1, options['students'] + 1):
            if roll_no in existing:
                continue
            Student.objects.create(roll_no=roll_no, name=fake.name(), year=year, division=division)
            created_students += 1
        students = list(Student.objects.filter(year=year, division=division))
        self.stdout.write(self.style.SUCCESS(f'✓ {created_students} students created ({len(students)} in class)'))

        # Marks, through the update engine so every entry is validated
        items = []
        for exam_type in exam_types:
            per_part = table.total_marks(exam_type) // 4
            for student in students:
                for subject in subjects:
                    item = {
                        'student': student.id,
                        'exam_type': exam_type,
                        'year': year,
                        'subject': subject,
                        'teacher': teacher_ids[subject],
                    }
                    if rng.random() < absent_rate:
                        item['absent'] = True
                    else:
                        item['scores'] = {c: rng.randint(0, per_part) for c in ('q1q2', 'q3q4', 'q5q6', 'q7q8')}
                    items.append(item)

        admin = Principal(id=0, role='admin')
        result = MarkUpdateEngine(exam_types=table).submit_batch(items, admin)
        for failed in result.errors:
            self.stdout.write(self.style.WARNING(f'  item {failed.index}: {failed.error.reason}'))
        self.stdout.write(self.style.SUCCESS(f'✓ {result.saved} entries saved, {result.failed} failed'))
