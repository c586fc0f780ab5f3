"""
Course whitelist policy.

The set of valid course titles is injected into the record layer instead of
being hard-coded, so it can change without touching verification logic.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional


DEFAULT_COURSE_NAME = "OSHEQ Training"
SEED_COURSES = ("OSHEQ Training", "OSHEQ Advanced Training")


@dataclass(frozen=True)
class Course:
    name: str
    active: bool = True


class CoursePolicy:
    """Validate course names against a whitelist and supply the default title."""

    def __init__(self, courses: Optional[Iterable[Course]] = None, default_course: str = DEFAULT_COURSE_NAME):
        self.default_course = default_course
        self._courses = {}
        for course in courses if courses is not None else [Course(name) for name in SEED_COURSES]:
            # Names are unique; a later entry replaces an earlier one.
            self._courses[course.name.strip().lower()] = course

    @classmethod
    def from_env(cls) -> "CoursePolicy":
        default_course = (os.getenv("DEFAULT_COURSE_NAME") or DEFAULT_COURSE_NAME).strip()
        raw = os.getenv("COURSE_NAMES", "")
        names = [n.strip() for n in raw.split(",") if n.strip()]
        if not names:
            names = list(SEED_COURSES)
        return cls([Course(name) for name in names], default_course=default_course)

    def active_names(self) -> List[str]:
        return [c.name for c in self._courses.values() if c.active]

    def is_valid(self, course_name: Optional[str]) -> bool:
        if not course_name:
            return False
        course = self._courses.get(course_name.strip().lower())
        return bool(course and course.active)

    def resolve(self, course_name: Optional[str]) -> str:
        """Return the stored course title, or the default when it is absent."""
        value = (course_name or "").strip()
        return value or self.default_course
