"""
Tests for YAML configuration loading.
"""

from datetime import time
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from salon_scheduler.config import AppConfig, StaffConfig, TenantConfig

from conftest import TENANT, TENANT_DATA, make_config


class TestAppConfig:
    """Tests for AppConfig."""

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"minimum_lead_minutes": 60, "tenants": [TENANT_DATA]}), encoding="utf-8")

        config = AppConfig.load_from_yaml(path)

        assert config.minimum_lead_minutes == 60
        assert config.granularity_minutes == 15
        assert config.find_tenant(TENANT).name == "Salon Mitte"
        assert config.find_tenant("missing") is None

    def test_example_config_is_valid(self):
        path = Path(__file__).parent.parent / "config.example.yaml"

        config = AppConfig.load_from_yaml(path)

        assert config.tenants[0].staff[0].buffer_before == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            AppConfig.load_from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("tenants: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(path)

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"granularity_minutes": 0},
            {"minimum_lead_minutes": -5},
            {"log_level": "LOUD"},
            {"tenants": [TENANT_DATA, TENANT_DATA]},
        ],
    )
    def test_invalid_settings(self, overrides):
        with pytest.raises(ValidationError):
            make_config(**overrides)

    def test_log_level_is_normalized(self):
        assert make_config(log_level="debug").log_level == "DEBUG"


class TestTenantConfig:
    """Tests for tenant, staff and service entries."""

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            TenantConfig(id="x", timezone="Mars/Olympus")

    def test_duplicate_staff(self):
        staff = [{"id": "anna", "name": "Anna"}, {"id": "anna", "name": "Anna B."}]

        with pytest.raises(ValidationError, match="Duplicate staff id"):
            TenantConfig(id="x", staff=staff)

    def test_service_validation(self):
        with pytest.raises(ValidationError):
            TenantConfig(id="x", services=[{"id": "cut", "name": "Cut", "duration_minutes": 0}])
        with pytest.raises(ValidationError):
            TenantConfig(id="x", services=[{"id": "cut", "name": "Cut", "duration_minutes": 30, "price": "-1"}])

    def test_buffer_shorthand(self):
        both = StaffConfig(id="a", name="A", buffer_minutes=10)
        explicit = StaffConfig(id="b", name="B", buffer_minutes=10, buffer_after=20)

        assert (both.buffer_before, both.buffer_after) == (10, 10)
        assert (explicit.buffer_before, explicit.buffer_after) == (10, 20)

    def test_explicit_zero_buffer_is_kept(self):
        staff = StaffConfig(id="a", name="A", buffer_minutes=10, buffer_before=0)

        assert (staff.buffer_before, staff.buffer_after) == (0, 10)

    def test_negative_buffer(self):
        with pytest.raises(ValidationError):
            StaffConfig(id="a", name="A", buffer_before=-1)

    def test_weekday_names(self):
        staff = StaffConfig(
            id="a",
            name="A",
            working_hours={"Monday": {"open": "09:00", "close": "17:00"}},
        )

        member = staff.to_domain("Europe/Berlin")

        assert member.working_hours.days[0].open_time == time(9, 0)
        assert member.working_hours.timezone == "Europe/Berlin"
        with pytest.raises(ValidationError, match="Unknown weekday"):
            StaffConfig(id="a", name="A", working_hours={"funday": {"open": "09:00", "close": "17:00"}})

    def test_hours_and_breaks(self):
        with pytest.raises(ValidationError, match="close must be later"):
            StaffConfig(id="a", name="A", working_hours={"monday": {"open": "17:00", "close": "09:00"}})
        with pytest.raises(ValidationError, match="within opening hours"):
            StaffConfig(
                id="a",
                name="A",
                working_hours={
                    "monday": {"open": "09:00", "close": "17:00", "breaks": [{"start": "08:00", "end": "09:30"}]}
                },
            )


class TestStaticDirectory:
    """Tests for the config-backed catalog and staff directory."""

    def test_lists_only_active_and_bookable(self):
        from salon_scheduler.adapters.static_directory import StaticDirectory
        from salon_scheduler.domain.exceptions import UnknownEntityError

        directory = StaticDirectory.from_config(make_config())

        assert [service.id for service in directory.list_active_services(TENANT)] == [
            "cut", "color", "blowdry", "wash",
        ]
        assert [member.id for member in directory.list_eligible_staff(TENANT)] == ["anna", "ben"]
        assert directory.tenant_timezone(TENANT) == "Europe/Berlin"
        with pytest.raises(UnknownEntityError):
            directory.list_eligible_staff("nope")
