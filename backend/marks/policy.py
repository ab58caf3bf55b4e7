"""Exam-type policy table: canonical names, aliases, thresholds and denominators."""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Tuple

from .exceptions import ValidationError


@dataclass(frozen=True)
class ExamTypePolicy:
    name: str
    threshold: int
    total_marks: int
    aliases: Tuple[str, ...] = ()

    def status_for(self, total: int) -> str:
        return 'Pass' if total >= self.threshold else 'Fail'


class ExamTypeTable:
    """Resolves exam type names (canonical or alias) to their policy.

    The table is explicit: a name is either listed or rejected, there is no
    guessing from substrings like "unit".
    """

    def __init__(self, policies: Iterable[ExamTypePolicy]):
        self._policies: Dict[str, ExamTypePolicy] = {}
        self._lookup: Dict[str, str] = {}
        for p in policies:
            if p.total_marks <= 0:
                raise ValueError(f'Exam type {p.name!r}: total_marks must be positive')
            if not 0 <= p.threshold <= p.total_marks:
                raise ValueError(f'Exam type {p.name!r}: threshold must be between 0 and total_marks')
            for key in (p.name,) + tuple(p.aliases):
                if key in self._lookup:
                    raise ValueError(f'Exam type name {key!r} is defined twice')
                self._lookup[key] = p.name
            self._policies[p.name] = p

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping]) -> 'ExamTypeTable':
        return cls(
            ExamTypePolicy(
                name=name,
                threshold=int(conf['threshold']),
                total_marks=int(conf['total_marks']),
                aliases=tuple(conf.get('aliases') or ()),
            )
            for name, conf in mapping.items()
        )

    @classmethod
    def from_settings(cls) -> 'ExamTypeTable':
        from django.conf import settings
        return cls.from_mapping(settings.MARKS_EXAM_TYPES)

    def __contains__(self, exam_type) -> bool:
        return isinstance(exam_type, str) and exam_type.strip() in self._lookup

    def resolve(self, exam_type) -> ExamTypePolicy:
        key = exam_type.strip() if isinstance(exam_type, str) else None
        if not key:
            raise ValidationError('Exam type is required', field='exam_type')
        if key not in self._lookup:
            raise ValidationError(f'Unknown exam type: {key}', field='exam_type')
        return self._policies[self._lookup[key]]

    def canonical(self, exam_type) -> str:
        return self.resolve(exam_type).name

    def threshold(self, exam_type) -> int:
        return self.resolve(exam_type).threshold

    def total_marks(self, exam_type) -> int:
        return self.resolve(exam_type).total_marks

    def policies(self) -> List[ExamTypePolicy]:
        return list(self._policies.values())
