"""
Shared fixtures.
"""

from pathlib import Path

import pytest

CONFIG_YAML = """
timezone: UTC
business:
  id: 1
  name: Glow Studio
  hours:
    monday: {start: "09:00", end: "12:00"}
    tue: {start: "09:00", end: "17:00"}
staff:
  - id: 7
    name: Ada
    hours:
      1: {start: "10:00", end: "13:00"}
  - id: 8
    name: Tunde
services:
  - name: haircut
    duration_minutes: 60
  - name: trim
    duration_minutes: 30
packages:
  - name: bridal
    duration_minutes: 120
time_off:
  - title: Lunch
    start: "2025-01-06 12:00"
    end: "2025-01-06 13:00"
bookings:
  - date: "2025-01-06"
    start: "10:00"
    service: haircut
  - date: "2025-01-06"
    start: "10:00"
    end: "10:30"
    staff_id: 7
"""


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


@pytest.fixture
def config_with_bad_booking_path(tmp_path: Path) -> Path:
    path = tmp_path / "config_bad_booking.yaml"
    path.write_text(
        CONFIG_YAML
        + '  - date: "2025-01-06"\n'
        + '    start: "11:00"\n'
        + "    service: unknown-service\n",
        encoding="utf-8",
    )
    return path
