from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r'records', views.MarkRecordViewSet, basename='markrecord')

urlpatterns = [
    path('', include(router.urls)),
    path('subject-view/', views.subject_view, name='marks-subject-view'),
    path('dashboard/', views.class_dashboard, name='marks-dashboard'),
    path('class-sheet/', views.class_sheet, name='marks-class-sheet'),
    path('transcript/<int:student_id>/', views.transcript, name='marks-transcript'),
    path('export/', views.export_report, name='marks-export'),
    path('exam-types/', views.exam_types, name='marks-exam-types'),
]
