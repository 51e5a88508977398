"""Student directory filtering and attendance dashboard summaries."""
import logging
from dataclasses import dataclass, field
from typing import List

from . import form_options
from .config import Config
from .errors import BusinessRuleError

logger = logging.getLogger(__name__)

ALL = 'All'

STUDENT_FIELDS = ('rollNumber', 'name', 'email', 'department', 'year', 'semester', 'section', 'phone')
SEARCH_FIELDS = ('rollNumber', 'name', 'email', 'department', 'section', 'semester', 'phone')


@dataclass
class Student:
    id: str = ''
    rollNumber: str = ''
    name: str = ''
    email: str = ''
    department: str = ''
    year: str = ''
    semester: str = ''
    section: str = ''
    phone: str = ''

    @classmethod
    def from_payload(cls, payload):
        values = {name: str(payload.get(name) or '') for name in STUDENT_FIELDS}
        # Some records still carry the legacy "semister" key
        if not values['semester'] and payload.get('semister'):
            values['semester'] = str(payload['semister'])
        values['id'] = str(payload.get('_id') or payload.get('id') or values['rollNumber'])
        return cls(**values)

    def changes_from(self, edited):
        """Fields in ``edited`` that differ from this record."""
        return {
            name: value
            for name, value in edited.items()
            if name in STUDENT_FIELDS and value != getattr(self, name)
        }


def year_filter_options():
    return [ALL] + form_options.YEARS


def department_filter_options():
    return [ALL] + form_options.DEPARTMENTS


def semester_filter_options(year=ALL):
    if year != ALL and year in form_options.SEMESTERS:
        return [ALL] + form_options.semesters_for(year)
    seen = []
    for semesters in form_options.SEMESTERS.values():
        seen.extend(value for value in semesters if value not in seen)
    return [ALL] + seen


def section_filter_options(year=ALL, department=ALL):
    sections = form_options.sections_for(year, department) if ALL not in (year, department) else []
    if sections:
        return [ALL] + sections
    seen = []
    for by_department in form_options.SECTIONS.values():
        for values in by_department.values():
            seen.extend(value for value in values if value not in seen)
    return [ALL] + sorted(seen)


def filter_students(students, search='', department=ALL, year=ALL, semester=ALL, section=ALL):
    result = list(students)
    if department != ALL:
        result = [s for s in result if s.department == department]
    if year != ALL:
        result = [s for s in result if s.year == year]
    if semester != ALL:
        result = [s for s in result if s.semester == semester]
    if section != ALL:
        result = [s for s in result if s.section == section]
    term = (search or '').strip().lower()
    if term:
        result = [
            s for s in result
            if any(term in getattr(s, name).lower() for name in SEARCH_FIELDS)
        ]
    return result


def _number(value, default=0):
    try:
        return float(value) if '.' in str(value) else int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class SubjectStat:
    subject: str
    percentage: float = 0
    present: int = 0
    total: int = 0


@dataclass
class AttendanceSummary:
    total_classes: int = 0
    present_count: int = 0
    absent_count: int = 0
    overall_percentage: float = 0
    subjects: List[SubjectStat] = field(default_factory=list)
    monthly: List[dict] = field(default_factory=list)
    weekly: List[dict] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload):
        payload = payload or {}
        subjects = [
            SubjectStat(
                subject=str(item.get('subject') or ''),
                percentage=_number(item.get('percentage')),
                present=_number(item.get('present', item.get('presentCount'))),
                total=_number(item.get('total', item.get('totalClasses'))),
            )
            for item in payload.get('subjects') or []
            if isinstance(item, dict)
        ]
        return cls(
            total_classes=_number(payload.get('totalClasses')),
            present_count=_number(payload.get('presentCount')),
            absent_count=_number(payload.get('absentCount')),
            overall_percentage=_number(payload.get('overallPercentage')),
            subjects=subjects,
            monthly=list(payload.get('monthlyData') or []),
            weekly=list(payload.get('weeklyData') or []),
        )

    @property
    def has_data(self):
        return bool(self.weekly or self.monthly or self.subjects)

    def month(self, index=-1):
        """Monthly bucket at ``index`` (latest by default) with safe defaults."""
        defaults = {
            'month': 'N/A', 'totalPeriods': 0, 'presentPeriods': 0, 'absentPeriods': 0,
            'percentage': 0, 'improvement': 'N/A', 'bestSubject': 'N/A', 'worstSubject': 'N/A',
        }
        if not self.monthly:
            return defaults
        return dict(defaults, **self.monthly[index % len(self.monthly)])

    def week(self, index=-1):
        defaults = {'weekName': 'N/A', 'dates': [], 'attendance': []}
        if not self.weekly:
            return defaults
        return dict(defaults, **self.weekly[index % len(self.weekly)])


def register_student(api, details, images, min_images=None):
    """Register a student's face images, then their details.

    ``details`` is the payload built by ``StudentRegistrationForm.to_payload``.
    Returns the combined confirmation message from both services.
    """
    min_images = min_images or Config.MIN_FACE_IMAGES
    if len(images) < min_images:
        raise BusinessRuleError(f"Please take at least {min_images} pictures of the student's face.")
    face = api.register_face(details['rollNumber'], images)
    record = api.register_student(details)
    parts = ['Student registered successfully!']
    for payload in (face, record):
        if isinstance(payload, dict) and payload.get('message'):
            parts.append(payload['message'])
    logger.info('Registered student %s with %d face images', details['rollNumber'], len(images))
    return ' '.join(parts)
