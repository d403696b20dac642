"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import DayHours, Service, StaffMember, WorkingHours

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class BreakConfig(BaseModel):
    """A recurring break inside a working day."""
    start: time
    end: time

    @model_validator(mode="after")
    def validate_order(self) -> "BreakConfig":
        if self.end <= self.start:
            raise ValueError("break end must be later than break start")
        return self


class DayHoursConfig(BaseModel):
    """Opening hours of one weekday."""
    open: time
    close: time
    breaks: List[BreakConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DayHoursConfig":
        """Ensure the configured window opens before it closes."""
        if self.close <= self.open:
            raise ValueError("close must be later than open")
        for pause in self.breaks:
            if pause.start < self.open or pause.end > self.close:
                raise ValueError("breaks must lie within opening hours")
        return self

    def to_domain(self) -> DayHours:
        return DayHours(
            open_time=self.open,
            close_time=self.close,
            breaks=tuple((pause.start, pause.end) for pause in self.breaks),
        )


class ServiceConfig(BaseModel):
    """Catalog entry for a service."""
    id: str
    name: str
    duration_minutes: int
    price: Decimal = Decimal("0.00")
    category: Optional[str] = None
    active: bool = True

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("price")
    @classmethod
    def validate_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("price must not be negative")
        return value

    def to_domain(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            duration_minutes=self.duration_minutes,
            price=self.price,
            category=self.category,
            active=self.active,
        )


class StaffConfig(BaseModel):
    """Staff member with weekly working hours and buffers."""
    id: str
    name: str
    active: bool = True
    can_book: bool = True
    buffer_minutes: Optional[int] = None
    buffer_before: int = 0
    buffer_after: int = 0
    working_hours: Dict[str, DayHoursConfig] = Field(default_factory=dict)

    @field_validator("working_hours")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, DayHoursConfig]) -> Dict[str, DayHoursConfig]:
        """Accept weekday names (monday..sunday, case-insensitive)."""
        normalized: Dict[str, DayHoursConfig] = {}
        for key, hours in value.items():
            day = key.strip().lower()
            if day not in WEEKDAYS:
                raise ValueError(f"Unknown weekday '{key}', expected one of {WEEKDAYS}")
            normalized[day] = hours
        return normalized

    @model_validator(mode="after")
    def apply_buffer_shorthand(self) -> "StaffConfig":
        """``buffer_minutes`` sets both sides unless they are given explicitly."""
        if self.buffer_minutes is not None:
            if self.buffer_minutes < 0:
                raise ValueError("buffer_minutes must not be negative")
            if "buffer_before" not in self.model_fields_set:
                self.buffer_before = self.buffer_minutes
            if "buffer_after" not in self.model_fields_set:
                self.buffer_after = self.buffer_minutes
        if self.buffer_before < 0 or self.buffer_after < 0:
            raise ValueError("buffers must not be negative")
        return self

    def to_domain(self, timezone: str) -> StaffMember:
        days = {WEEKDAYS.index(day): hours.to_domain() for day, hours in self.working_hours.items()}
        return StaffMember(
            id=self.id,
            name=self.name,
            working_hours=WorkingHours(days=days, timezone=timezone),
            active=self.active,
            can_book=self.can_book,
            buffer_before=self.buffer_before,
            buffer_after=self.buffer_after,
        )


class TenantConfig(BaseModel):
    """A salon with its timezone, service catalog and staff."""
    id: str
    name: str = ""
    timezone: str = "Europe/Berlin"
    services: List[ServiceConfig] = Field(default_factory=list)
    staff: List[StaffConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "TenantConfig":
        """Ensure service and staff ids are unique within the tenant."""
        for label, ids in (
            ("service", [service.id for service in self.services]),
            ("staff", [member.id for member in self.staff]),
        ):
            seen: set[str] = set()
            for identifier in ids:
                if identifier in seen:
                    raise ValueError(f"Duplicate {label} id detected: {identifier}")
                seen.add(identifier)
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = "sqlite:///./salon_scheduler.db"
    granularity_minutes: int = 15
    minimum_lead_minutes: int = 30
    log_level: str = "INFO"
    tenants: List[TenantConfig] = Field(default_factory=list)

    @field_validator("granularity_minutes")
    @classmethod
    def validate_granularity(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("granularity_minutes must be greater than zero")
        return value

    @field_validator("minimum_lead_minutes")
    @classmethod
    def validate_lead(cls, value: int) -> int:
        if value < 0:
            raise ValueError("minimum_lead_minutes must not be negative")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("tenants")
    @classmethod
    def validate_tenants(cls, value: List[TenantConfig]) -> List[TenantConfig]:
        seen: set[str] = set()
        for tenant in value:
            if tenant.id in seen:
                raise ValueError(f"Duplicate tenant id detected: {tenant.id}")
            seen.add(tenant.id)
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

    def find_tenant(self, tenant_id: str) -> TenantConfig | None:
        """Find a tenant by id."""
        for tenant in self.tenants:
            if tenant.id == tenant_id:
                return tenant
        return None


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
