from __future__ import annotations

from pathlib import Path

import pytest

from pg_padring_gen.config import Config, load_config
from pg_padring_gen.inventory import InstanceRecord, Inventory, load_inventory
from pg_padring_gen.registry import DesignDatabase

DESIGN_DIR = Path(__file__).resolve().parent.parent / "designs" / "gcd_with_io"


@pytest.fixture
def design_dir() -> Path:
    return DESIGN_DIR


@pytest.fixture
def config() -> Config:
    return load_config(DESIGN_DIR / "config.yaml", environ={})


@pytest.fixture
def inventory() -> Inventory:
    return load_inventory(DESIGN_DIR / "inventory.yaml")


@pytest.fixture
def db() -> DesignDatabase:
    return DesignDatabase(design_name="test")


@pytest.fixture
def make_pads():
    """Build pad instance records from names."""

    def _make(names: list[str], master: str = "sg13g2_IOPadIn") -> list[InstanceRecord]:
        return [InstanceRecord(name=n, master=master, pins=["vdd", "vss", "iovdd", "iovss", "pad"]) for n in names]

    return _make
