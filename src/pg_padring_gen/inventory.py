"""Loader for the instance inventory produced by logic elaboration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from pg_padring_gen.errors import ConfigurationError


@dataclass(frozen=True)
class PinRef:
    """One pin of one component instance."""

    instance: str
    pin: str


class InstanceRecord(BaseModel):
    name: str
    master: str
    # pin name -> net declared by elaboration (None for supply pins left to global connect)
    pins: dict[str, str | None] = {}

    @field_validator("pins", mode="before")
    @classmethod
    def _pins_from_list(cls, value):
        if value is None:
            return {}
        if isinstance(value, (list, tuple)):
            return {str(p): None for p in value}
        return value


class Inventory(BaseModel):
    pads: list[InstanceRecord] = []
    cells: list[InstanceRecord] = []
    # Standard-cell row edges (um) from the placement stage, if already known.
    rows: list[float] | None = None

    @field_validator("pads", "cells")
    @classmethod
    def _unique_names(cls, records: list[InstanceRecord]) -> list[InstanceRecord]:
        seen: set[str] = set()
        dupes: set[str] = set()
        for record in records:
            if record.name in seen:
                dupes.add(record.name)
            seen.add(record.name)
        if dupes:
            raise ValueError(f"duplicate instance name(s): {', '.join(sorted(dupes))}")
        return records

    @property
    def instances(self) -> list[InstanceRecord]:
        return [*self.pads, *self.cells]

    def pin_refs(self) -> list[PinRef]:
        return [PinRef(inst.name, pin) for inst in self.instances for pin in inst.pins]

    def declared_nets(self) -> dict[PinRef, str]:
        """Signal nets already fixed by elaboration."""
        return {
            PinRef(inst.name, pin): net
            for inst in self.instances
            for pin, net in inst.pins.items()
            if net
        }


def load_inventory(path: str | Path) -> Inventory:
    """Load and validate a YAML inventory file."""
    path = Path(path)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    try:
        return Inventory.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid inventory {path}: {exc}") from exc
