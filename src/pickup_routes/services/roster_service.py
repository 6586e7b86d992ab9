"""Roster and absence providers: schools, active students and same-day absences."""
from collections import Counter
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import requests
from dotenv import load_dotenv
from loguru import logger

from ..configurations.config import Config
from ..models.errors import DependencyUnavailable
from ..models.school import Absence, Coordinate, School, Student, parse_clock_time

load_dotenv()

DEFAULT_DISMISSAL_TIME = "15:00"


def _unwrap(payload) -> List[Dict[str, Any]]:
    """Accept bare lists as well as paginated ``content``/``data`` envelopes."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("content", "data", "items"):
            if isinstance(payload.get(key), list):
                return payload[key]
        return [payload]
    return []


def _float_or_none(value) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def standardize_school(record: Dict[str, Any], student_count: int = 0) -> School:
    """Normalize either a flat school record or a ``{"school": {...}}`` route-school record."""
    source = record.get("school") if isinstance(record.get("school"), dict) else record

    school_id = source.get("id", source.get("schoolId", record.get("schoolId")))
    lat = _float_or_none(source.get("latitude", source.get("lat")))
    lon = _float_or_none(source.get("longitude", source.get("lon", source.get("lng"))))
    location = Coordinate(lat, lon) if lat is not None and lon is not None else None

    return School(
        school_id=str(school_id),
        name=source.get("name") or f"School {school_id}",
        dismissal_time=parse_clock_time(source.get("dismissalTime") or source.get("dismissal_time")
                                        or DEFAULT_DISMISSAL_TIME),
        student_count=int(source.get("studentCount", source.get("student_count", student_count)) or 0),
        location=location,
        address=source.get("address") or "",
    )


def standardize_student(record: Dict[str, Any]) -> Student:
    return Student(
        student_id=str(record.get("id", record.get("studentId"))),
        school_id=str(record.get("schoolId", record.get("school_id"))),
        first_name=record.get("firstName", record.get("first_name", "")) or "",
        last_name=record.get("lastName", record.get("last_name", "")) or "",
        is_active=bool(record.get("isActive", record.get("is_active", True))),
    )


def with_student_counts(schools: Iterable[School], students: Iterable[Student]) -> List[School]:
    counts = Counter(student.school_id for student in students if student.is_active)
    return [
        School(
            school_id=school.school_id,
            name=school.name,
            dismissal_time=school.dismissal_time,
            student_count=counts.get(school.school_id, 0),
            location=school.location,
            address=school.address,
        )
        for school in schools
    ]


class InMemoryRoster:
    """Roster and absence provider backed by plain lists."""

    def __init__(self, schools: List[School] = None, students: List[Student] = None,
                 absences: List[Absence] = None):
        self.schools = list(schools or [])
        self.students = list(students or [])
        self.absences = list(absences or [])

    def load(self, schools: List[School] = None, students: List[Student] = None,
             absences: List[Absence] = None):
        if schools is not None:
            self.schools = list(schools)
        if students is not None:
            self.students = list(students)
        if absences is not None:
            self.absences = list(absences)
        logger.info(f"Roster loaded: {len(self.schools)} schools, {len(self.students)} students, "
                    f"{len(self.absences)} absences")

    def active_students(self) -> List[Student]:
        return [student for student in self.students if student.is_active]

    def schools_with_active_student_counts(self) -> List[School]:
        return with_student_counts(self.schools, self.active_students())

    def absences_for_date(self, service_date: date) -> List[Absence]:
        return [absence for absence in self.absences if absence.absence_date == service_date]

    def mark_absent(self, student_id: str, service_date: date, reason: str = None) -> Absence:
        absence = Absence(student_id=student_id, absence_date=service_date, reason=reason)
        self.absences.append(absence)
        return absence


class RosterService:
    """Roster and absence provider backed by the school administration API."""

    def __init__(self, base_url: str = None, token: str = None, timeout: float = None):
        self.base_url = (base_url or Config.ROSTER_API_BASE_URL).rstrip("/")
        self.token = token if token is not None else Config.ROSTER_API_TOKEN
        self.timeout = timeout or Config.DEPENDENCY_TIMEOUT_SECONDS
        self.session = requests.Session()

        logger.info(f"RosterService initialized with base URL: {self.base_url}")

    def _get_headers(self) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token.strip()}"
        return headers

    def _get(self, dependency: str, endpoint: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(url, headers=self._get_headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"{dependency} request to {url} failed: {e}")
            raise DependencyUnavailable(dependency, str(e)) from e

        if response.status_code != 200:
            logger.error(f"{dependency} returned status {response.status_code}: {response.text[:200]}")
            raise DependencyUnavailable(dependency, f"status {response.status_code}")

        try:
            return _unwrap(response.json())
        except ValueError as e:
            raise DependencyUnavailable(dependency, f"invalid JSON: {e}") from e

    def active_students(self) -> List[Student]:
        students = [standardize_student(r) for r in self._get("roster", "/api/students")]
        active = [student for student in students if student.is_active]
        logger.info(f"Loaded {len(active)}/{len(students)} active students from roster API")
        return active

    def schools_with_active_student_counts(self) -> List[School]:
        records = self._get("roster", "/api/schools")
        schools = [standardize_school(r) for r in records if r.get("isActive", r.get("is_active", True))]
        schools = with_student_counts(schools, self.active_students())
        logger.success(f"Loaded {len(schools)} active schools from roster API")
        return schools

    def absences_for_date(self, service_date: date) -> List[Absence]:
        records = self._get("absences", f"/api/student-absences/date/{service_date.isoformat()}")
        absences = [
            Absence(
                student_id=str(r.get("studentId", r.get("student_id"))),
                absence_date=service_date,
                reason=r.get("reason"),
            )
            for r in records
        ]
        logger.info(f"Loaded {len(absences)} absences for {service_date}")
        return absences
