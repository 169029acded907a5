"""
Data models for the jobs marketplace.

Job lifecycle:
    OPEN -> FILLED -> TERMINATED
    OPEN -> TERMINATED

FILLED is entered only through a hire, TERMINATED only through cancellation,
the rating gate, or the expiry sweeper. TERMINATED is absorbing: the job row
is deleted together with its applications and only the audit trail remains.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utc_now() -> datetime:
    """Current aware UTC datetime."""
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


class JobStatus(str, Enum):
    """Status of a job posting."""

    OPEN = "open"  # Visible to workers, accepting applications
    FILLED = "filled"  # A worker was hired, awaiting the company's rating
    TERMINATED = "terminated"  # Closed out; the record is purged


class ApplicationStatus(str, Enum):
    """Status of a job application."""

    PENDING = "pending"
    HIRED = "hired"


class RequiredGender(str, Enum):
    """Gender filter a company may put on a posting."""

    MALE = "male"
    FEMALE = "female"
    LGBTQIA = "lgbtqia"


class LicenseCategory(str, Enum):
    """Driver's license categories a posting may require."""

    A = "A"
    B = "B"
    AB = "AB"
    C = "C"
    D = "D"
    E = "E"


VALID_JOB_TRANSITIONS: Dict[str, set] = {
    JobStatus.OPEN.value: {JobStatus.FILLED.value, JobStatus.TERMINATED.value},
    JobStatus.FILLED.value: {JobStatus.TERMINATED.value},
    JobStatus.TERMINATED.value: set(),
}

# Heavier vehicle categories include the car category and every lighter
# heavy category; motorcycle (A) is only covered by A and AB.
_LICENSE_COVERAGE: Dict[str, set] = {
    "A": {"A"},
    "B": {"B"},
    "AB": {"A", "B", "AB"},
    "C": {"B", "C"},
    "D": {"B", "C", "D"},
    "E": {"B", "C", "D", "E"},
}

RATING_MIN = 0.0
RATING_MAX = 5.0
RATING_STEP = 0.5


def license_covers(held: Optional[str], required: Optional[str]) -> bool:
    """Check whether a held license category satisfies a required one."""
    if required is None:
        return True
    if held is None:
        return False
    held = held.value if isinstance(held, LicenseCategory) else str(held).upper()
    required = required.value if isinstance(required, LicenseCategory) else str(required).upper()
    return required in _LICENSE_COVERAGE.get(held, set())


def validate_rating(value: Any) -> float:
    """Validate a rating value and return it as a float.

    Ratings are in [0, 5] in 0.5 steps.
    """
    if isinstance(value, bool):
        raise ValueError("Rating must be a number")
    try:
        rating = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Rating must be a number, got {value!r}")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise ValueError(f"Rating must be between {RATING_MIN} and {RATING_MAX}")
    if (rating / RATING_STEP) != int(rating / RATING_STEP):
        raise ValueError(f"Rating must be a multiple of {RATING_STEP}")
    return rating


@dataclass
class WorkerProfile:
    """The slice of a worker's profile the marketplace reads or writes.

    Everything except `rating` is owned by the identity/profile system and
    only read here (eligibility filters). `rating` is written by the rating
    gate and overwritten on every completed hire cycle.
    """

    worker_id: str
    name: Optional[str] = None
    gender: Optional[str] = None
    license_category: Optional[str] = None
    rating: Optional[float] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.worker_id:
            raise ValueError("worker_id is required")
        if isinstance(self.gender, RequiredGender):
            self.gender = self.gender.value
        if isinstance(self.license_category, LicenseCategory):
            self.license_category = self.license_category.value
        if self.license_category is not None:
            self.license_category = str(self.license_category).upper()
            if self.license_category not in _LICENSE_COVERAGE:
                raise ValueError(f"Invalid license category: {self.license_category}")
        if self.rating is not None:
            self.rating = validate_rating(self.rating)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "name": self.name,
            "gender": self.gender,
            "license_category": self.license_category,
            "rating": self.rating,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Job:
    """A single-day work posting created by a company."""

    id: str
    poster_id: str
    role: str
    service_date: date
    start_time: time
    end_time: time
    daily_rate: Decimal
    description: str = ""
    benefits: List[str] = field(default_factory=list)
    city: Optional[str] = None
    neighborhood: Optional[str] = None
    company_name: Optional[str] = None
    required_gender: Optional[str] = None
    required_license: Optional[str] = None
    status: str = JobStatus.OPEN.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, JobStatus):
            self.status = self.status.value
        if self.status not in VALID_JOB_TRANSITIONS:
            raise ValueError(f"Invalid status: {self.status}")

        if not self.poster_id:
            raise ValueError("poster_id is required")
        if not self.role or not self.role.strip():
            raise ValueError("Role is required")
        self.role = self.role.strip()

        try:
            self.daily_rate = Decimal(str(self.daily_rate))
        except InvalidOperation:
            raise ValueError(f"Invalid daily rate: {self.daily_rate!r}")
        if not self.daily_rate.is_finite() or self.daily_rate < 0:
            raise ValueError("Daily rate cannot be negative")

        self.service_date = _parse_date(self.service_date)
        self.start_time = _parse_time(self.start_time)
        self.end_time = _parse_time(self.end_time)
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")

        self.benefits = sorted({b.strip() for b in self.benefits if b and b.strip()})

        if isinstance(self.required_gender, RequiredGender):
            self.required_gender = self.required_gender.value
        if self.required_gender is not None:
            valid = {g.value for g in RequiredGender}
            if self.required_gender not in valid:
                raise ValueError(f"Invalid required gender: {self.required_gender}")

        if isinstance(self.required_license, LicenseCategory):
            self.required_license = self.required_license.value
        if self.required_license is not None:
            self.required_license = str(self.required_license).upper()
            if self.required_license not in _LICENSE_COVERAGE:
                raise ValueError(f"Invalid license category: {self.required_license}")

    @property
    def location(self) -> Tuple[Optional[str], Optional[str]]:
        """(city, neighborhood) pair."""
        return (self.city, self.neighborhood)

    @property
    def is_open(self) -> bool:
        return self.status == JobStatus.OPEN.value

    @property
    def is_filled(self) -> bool:
        return self.status == JobStatus.FILLED.value

    def can_transition_to(self, target) -> bool:
        """Check whether the job may move to the target status."""
        target_val = target.value if isinstance(target, JobStatus) else target
        return target_val in VALID_JOB_TRANSITIONS.get(self.status, set())

    def is_eligible(self, profile: Optional[WorkerProfile]) -> bool:
        """Check the posting's gender and license filters against a worker.

        A missing profile matches everything: eligibility is a targeting
        hint, not an access control.
        """
        if profile is None:
            return True
        if self.required_gender is not None and profile.gender != self.required_gender:
            return False
        return license_covers(profile.license_category, self.required_license)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "poster_id": self.poster_id,
            "role": self.role,
            "description": self.description,
            "daily_rate": str(self.daily_rate),
            "service_date": self.service_date.isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "benefits": list(self.benefits),
            "city": self.city,
            "neighborhood": self.neighborhood,
            "company_name": self.company_name,
            "required_gender": self.required_gender,
            "required_license": self.required_license,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "filled_at": self.filled_at.isoformat() if self.filled_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Deserialize from a dictionary produced by to_dict()."""
        return cls(
            id=data["id"],
            poster_id=data["poster_id"],
            role=data["role"],
            description=data.get("description") or "",
            daily_rate=Decimal(str(data["daily_rate"])),
            service_date=_parse_date(data["service_date"]),
            start_time=_parse_time(data["start_time"]),
            end_time=_parse_time(data["end_time"]),
            benefits=list(data.get("benefits") or []),
            city=data.get("city"),
            neighborhood=data.get("neighborhood"),
            company_name=data.get("company_name"),
            required_gender=data.get("required_gender"),
            required_license=data.get("required_license"),
            status=data.get("status", JobStatus.OPEN.value),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
            filled_at=_parse_datetime(data.get("filled_at")),
        )


@dataclass
class JobApplication:
    """A worker's application to a job."""

    id: str
    job_id: str
    worker_id: str
    worker_name: Optional[str] = None
    status: str = ApplicationStatus.PENDING.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, ApplicationStatus):
            self.status = self.status.value
        valid = {s.value for s in ApplicationStatus}
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}")
        if not self.job_id:
            raise ValueError("job_id is required")
        if not self.worker_id:
            raise ValueError("worker_id is required")

    @property
    def is_hired(self) -> bool:
        return self.status == ApplicationStatus.HIRED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobApplication":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            worker_id=data["worker_id"],
            worker_name=data.get("worker_name"),
            status=data.get("status", ApplicationStatus.PENDING.value),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class JobStateTransition:
    """Audit log entry for a job status change.

    Kept after the job itself is purged.
    """

    id: str
    job_id: str
    from_status: Optional[str]
    to_status: str
    actor_id: str
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
