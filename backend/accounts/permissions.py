from dataclasses import dataclass

from rest_framework.permissions import BasePermission


@dataclass(frozen=True)
class Principal:
    """Authenticated caller attached to every mutating marks operation."""
    id: int
    role: str

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_teacher(self):
        return self.role == 'teacher'


def principal_from_user(user):
    # Django staff/superusers act as admins even without the custom role
    role = getattr(user, 'role', '') or ''
    if user.is_staff or user.is_superuser:
        role = 'admin'
    return Principal(id=user.pk, role=role)


class IsTeacherOrAdmin(BasePermission):
    def has_permission(self, request, view):
        u = request.user
        return bool(u and u.is_authenticated and (getattr(u, 'role', None) in ('teacher', 'admin') or u.is_staff or u.is_superuser))
