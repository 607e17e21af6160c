"""
Shared fixtures for ACES Inspector tests.
"""
import os
import sys

import pytest

# Ensure the package is importable without installing it
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from aces_inspector.config import Settings  # noqa: E402
from aces_inspector.reference.base import BaseVehicleInfo  # noqa: E402
from aces_inspector.reference.memory import InMemoryReference  # noqa: E402


@pytest.fixture
def reference() -> InMemoryReference:
    """A small VCdb/PCdb/Qdb: two Civics and an Accord, brake pads and rotors."""
    return InMemoryReference(
        base_vehicles={
            5911: BaseVehicleInfo(make="Honda", model="Civic", year="2010"),
            5912: BaseVehicleInfo(make="Honda", model="Civic", year="2011"),
            6001: BaseVehicleInfo(make="Honda", model="Accord", year="2010"),
        },
        attributes={
            "SubModel": {20: "LX", 21: "EX", 22: "Si"},
            "EngineBase": {100: "1.8L L4", 101: "2.0L L4"},
            "DriveType": {1: "FWD", 2: "AWD"},
            "FrontBrakeType": {5: "Disc", 6: "Drum"},
        },
        configurations={
            5911: [
                {"SubModel": 20, "EngineBase": 100},
                {"SubModel": 21, "EngineBase": 100},
                {"SubModel": 22, "EngineBase": 101},
            ],
        },
        part_types={1684: "Disc Brake Pad", 1896: "Disc Brake Rotor", 5340: "Wiper Blade"},
        positions={1: "N/A", 22: "Front", 30: "Rear"},
        part_type_positions=[(1684, 22), (1684, 30), (1896, 22), (1896, 30), (5340, 1)],
        qualifiers={2000: "With <p1/> Wheels", 2001: "Heavy Duty", 2002: "Police Package"},
        qualifier_types={2000: "Wheel", 2001: "Usage", 2002: "Usage"},
        vcdb_version="2024-01-26",
        pcdb_version="2024-01-19",
        qdb_version="2024-01-05",
    )


@pytest.fixture
def run_settings() -> Settings:
    """Defaults with staging off, so tests only touch disk when they ask to."""
    return Settings(_env_file=None, stage_diagnostics=False)
