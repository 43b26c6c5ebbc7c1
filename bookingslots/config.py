"""
Configuration models loaded from a YAML file and validated with pydantic.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pendulum
import yaml
from pendulum import DateTime
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import UnknownServiceError
from .domain.models import DAY_NAMES, BookingStatus, Interval, TimeOffWindow, WorkingHours
from .domain.timeutils import parse_hh_mm, to_minutes


_DAY_LOOKUP = {name.lower(): index for index, name in enumerate(DAY_NAMES)}
_DAY_LOOKUP.update({name[:3].lower(): index for index, name in enumerate(DAY_NAMES)})


class HoursConfig(BaseModel):
    """Opening interval for a single weekday, as ``"HH:MM"`` strings."""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate the time is a real HH:MM wall-clock time."""
        parse_hh_mm(value)
        return value.strip()

    @model_validator(mode="after")
    def validate_order(self) -> "HoursConfig":
        """Ensure the day opens before it closes."""
        if to_minutes(self.end) <= to_minutes(self.start):
            raise ValueError(f"end ({self.end}) must be later than start ({self.start})")
        return self

    def to_interval(self) -> Interval:
        return Interval.parse(self.start, self.end)


def _normalize_weekly_hours(value):
    """Accept weekday names ("monday", "mon") or numbers (0=Sunday) as keys."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("hours must be a mapping of weekday to {start, end}")

    normalized = {}
    for key, hours in value.items():
        if isinstance(key, int):
            day = key
        elif isinstance(key, str) and key.strip().isdigit():
            day = int(key.strip())
        elif isinstance(key, str) and key.strip().lower() in _DAY_LOOKUP:
            day = _DAY_LOOKUP[key.strip().lower()]
        else:
            raise ValueError(f"Unknown weekday: {key!r}")

        if day not in range(7):
            raise ValueError(f"Weekday must be between 0 (Sunday) and 6 (Saturday), got {day}")
        if day in normalized:
            raise ValueError(f"Duplicate hours for {DAY_NAMES[day]}")
        normalized[day] = hours
    return normalized


class BusinessConfig(BaseModel):
    """Business identity and business-wide opening hours."""
    id: int = 1
    name: str = "My Business"
    hours: Dict[int, HoursConfig] = Field(default_factory=dict)

    @field_validator("hours", mode="before")
    @classmethod
    def validate_hours(cls, value):
        return _normalize_weekly_hours(value)


class StaffConfig(BaseModel):
    """Staff member; ``hours`` override the business hours per weekday."""
    id: int
    name: str
    hours: Dict[int, HoursConfig] = Field(default_factory=dict)

    @field_validator("hours", mode="before")
    @classmethod
    def validate_hours(cls, value):
        return _normalize_weekly_hours(value)


class ServiceConfig(BaseModel):
    """Catalog entry (service or package) with its booking duration."""
    name: str
    duration_minutes: int

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure the duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value


class TimeOffConfig(BaseModel):
    """Time off as absolute local datetimes (``YYYY-MM-DD HH:MM``)."""
    start: str
    end: str
    staff_id: Optional[int] = None
    title: Optional[str] = None
    is_all_day: bool = False

    @field_validator("start", "end")
    @classmethod
    def validate_datetime(cls, value: str) -> str:
        """Ensure the value parses as a datetime."""
        try:
            pendulum.parse(value)
        except ValueError as exc:
            raise ValueError(f"Invalid datetime '{value}': {exc}") from exc
        return value

    def to_window(self, timezone: str) -> TimeOffWindow:
        start = pendulum.parse(self.start, tz=timezone)
        end = pendulum.parse(self.end, tz=timezone)
        if self.is_all_day:
            start = start.start_of("day")
            end = end.start_of("day").add(days=1)
        return TimeOffWindow(
            start=start,
            end=end,
            staff_id=self.staff_id,
            title=self.title,
            is_all_day=self.is_all_day,
        )


class BookingConfig(BaseModel):
    """Seed booking. Either ``end`` or a catalog ``service`` must be given."""
    date: str
    start: str
    end: Optional[str] = None
    service: Optional[str] = None
    staff_id: Optional[int] = None
    status: BookingStatus = BookingStatus.CONFIRMED
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    payment_expires_at: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_hh_mm(value)
        return value

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        try:
            pendulum.from_format(value, "YYYY-MM-DD")
        except ValueError as exc:
            raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc
        return value

    @model_validator(mode="after")
    def validate_end_or_service(self) -> "BookingConfig":
        if self.end is None and self.service is None:
            raise ValueError("A booking needs either an end time or a service")
        return self

    def expires_at(self, timezone: str) -> Optional[DateTime]:
        if self.payment_expires_at is None:
            return None
        return pendulum.parse(self.payment_expires_at, tz=timezone)


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    slot_step_minutes: int = 30
    payment_expiry_minutes: int = 30
    business: BusinessConfig = Field(default_factory=BusinessConfig)
    staff: List[StaffConfig] = Field(default_factory=list)
    services: List[ServiceConfig] = Field(default_factory=list)
    packages: List[ServiceConfig] = Field(default_factory=list)
    time_off: List[TimeOffConfig] = Field(default_factory=list)
    bookings: List[BookingConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("slot_step_minutes", "payment_expiry_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than zero")
        return value

    @field_validator("staff")
    @classmethod
    def validate_staff(cls, value: List[StaffConfig]) -> List[StaffConfig]:
        """Ensure staff ids and names are unique."""
        seen_ids: set[int] = set()
        seen_names: set[str] = set()
        for member in value:
            name_key = member.name.lower()
            if member.id in seen_ids:
                raise ValueError(f"Duplicate staff id detected: {member.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate staff name detected: {member.name}")
            seen_ids.add(member.id)
            seen_names.add(name_key)
        return value

    @field_validator("services", "packages")
    @classmethod
    def validate_catalog(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure catalog names are unique (case-insensitive)."""
        seen: set[str] = set()
        for entry in value:
            key = entry.name.lower()
            if key in seen:
                raise ValueError(f"Duplicate catalog entry detected: {entry.name}")
            seen.add(key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_service(self, name: str) -> ServiceConfig | None:
        """Find a service by name."""
        for service in self.services:
            if service.name.lower() == name.lower():
                return service
        return None

    def find_package(self, name: str) -> ServiceConfig | None:
        """Find a package by name."""
        for package in self.packages:
            if package.name.lower() == name.lower():
                return package
        return None

    def duration_for(self, service: Optional[str] = None, package: Optional[str] = None) -> int:
        """
        Look up the booking duration from the catalog.

        A package takes precedence over the service it belongs to.

        Raises:
            UnknownServiceError: If neither name resolves
        """
        if package:
            entry = self.find_package(package)
            if entry is None:
                raise UnknownServiceError(f"Unknown package: '{package}'")
            return entry.duration_minutes

        if service:
            entry = self.find_service(service)
            if entry is None:
                raise UnknownServiceError(f"Unknown service: '{service}'")
            return entry.duration_minutes

        raise UnknownServiceError("A service or package is required")

    def resolve_staff(self, identifier: str | int | None) -> Optional[int]:
        """
        Resolve a staff identifier (id or name) to a staff id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        if identifier is None:
            return None

        for member in self.staff:
            if str(member.id) == str(identifier).strip() or member.name.lower() == str(identifier).strip().lower():
                return member.id

        raise ValueError(
            f"Unknown staff identifier: '{identifier}'. "
            f"Use a staff id or a configured name."
        )

    def working_hours(self) -> List[WorkingHours]:
        """Flatten business and staff hours into WorkingHours records."""
        schedule = [
            WorkingHours(day_of_week=day, interval=hours.to_interval())
            for day, hours in sorted(self.business.hours.items())
        ]
        for member in self.staff:
            schedule.extend(
                WorkingHours(day_of_week=day, interval=hours.to_interval(), staff_id=member.id)
                for day, hours in sorted(member.hours.items())
            )
        return schedule

    def time_off_windows(self) -> List[TimeOffWindow]:
        return [entry.to_window(self.timezone) for entry in self.time_off]


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of bookingslots/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
