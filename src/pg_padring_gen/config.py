"""Pydantic models for YAML configuration parsing."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, ValidationError, model_validator

from pg_padring_gen.errors import ConfigurationError
from pg_padring_gen.geometry import SIDE_ORDER, Rect, Side

logger = logging.getLogger(__name__)

Area = tuple[float, float, float, float]


class RingConfig(BaseModel):
    widths: tuple[float, float] = (2.0, 2.0)
    spacings: tuple[float, float] = (2.0, 2.0)
    core_offsets: tuple[float, float] = (10.0, 10.0)


class PdnConfig(BaseModel):
    power_net: str = "VDD"
    ground_net: str = "VSS"
    io_power_net: str = "IOVDD"
    io_ground_net: str = "IOVSS"
    vertical_layer: str = "Metal4"
    horizontal_layer: str = "Metal5"
    rail_layer: str = "Metal1"
    rail_width: float = 0.28
    vpitch: float = 80.0
    hpitch: float = 80.0
    vwidth: float = 1.6
    hwidth: float = 1.6
    stripe_offset: float = 0.0
    row_height: float = 3.78
    ring: RingConfig = RingConfig()


class FillerConfig(BaseModel):
    master: str
    width: float


DEFAULT_FILLERS = [
    FillerConfig(master="sg13g2_Filler10000", width=10.0),
    FillerConfig(master="sg13g2_Filler4000", width=4.0),
    FillerConfig(master="sg13g2_Filler2000", width=2.0),
    FillerConfig(master="sg13g2_Filler1000", width=1.0),
    FillerConfig(master="sg13g2_Filler400", width=0.4),
    FillerConfig(master="sg13g2_Filler200", width=0.2),
]


class PadConfig(BaseModel):
    io_length: float = 180.0
    io_width: float = 80.0
    bondpad_size: float = 70.0
    sealring_offset: float = 20.0
    site_width: float = 1.0
    master_pattern: str = "sg13g2_IOPad*"
    instance_pattern: str = "u_pad_*"
    pads_per_side: dict[Side, int] = {side: 3 for side in SIDE_ORDER}
    corner_master: str = "sg13g2_Corner"
    fillers: list[FillerConfig] = DEFAULT_FILLERS
    bondpad_master: str = "bondpad_70x70"
    bondpad_offset: tuple[float, float] = (5.0, -70.0)
    bond_pin: str = "pad"

    @property
    def pad_margin(self) -> float:
        """Distance from the die edge to the first usable pad slot."""
        return self.io_length + self.bondpad_size + self.sealring_offset

    @property
    def row_offset(self) -> float:
        """Inset of the IO rows from the die edge."""
        return self.bondpad_size + self.sealring_offset


class ConnectionRuleConfig(BaseModel):
    net: str
    pin_pattern: str
    inst_pattern: str | None = None
    polarity: Literal["power", "ground", "unconstrained"] = "unconstrained"
    tier: int | None = None


class Config(BaseModel):
    design_name: str = "gcd_with_io"
    die_area: Area = (0.0, 0.0, 800.0, 800.0)
    core_area: Area | None = None
    pdn: PdnConfig = PdnConfig()
    pads: PadConfig = PadConfig()
    connections: list[ConnectionRuleConfig] | None = None

    @property
    def die_rect(self) -> Rect:
        return Rect.from_sequence(self.die_area)

    def core_rect(self) -> Rect:
        """Core area, falling back to the die area with a warning."""
        if self.core_area is None:
            logger.warning("CORE_AREA not set. Using die area: %s", " ".join(str(v) for v in self.die_area))
            return self.die_rect
        return Rect.from_sequence(self.core_area)

    @model_validator(mode="after")
    def validate_semantics(self) -> Config:
        die = self.die_rect
        if self.core_area is not None:
            core = Rect.from_sequence(self.core_area)
            if not die.contains(core):
                raise ValueError(f"core_area {self.core_area} must lie inside die_area {self.die_area}")

        pdn = self.pdn
        for name in ("rail_width", "vpitch", "hpitch", "vwidth", "hwidth", "row_height"):
            if getattr(pdn, name) <= 0:
                raise ValueError(f"pdn.{name} must be > 0")
        if pdn.vwidth * 2 > pdn.vpitch or pdn.hwidth * 2 > pdn.hpitch:
            raise ValueError("pdn stripe width must not exceed half the stripe pitch")
        if not 0 <= pdn.stripe_offset < min(pdn.vpitch, pdn.hpitch):
            raise ValueError(
                f"pdn.stripe_offset {pdn.stripe_offset} must be >= 0 and below the stripe pitch "
                f"({min(pdn.vpitch, pdn.hpitch)})"
            )
        if any(w <= 0 for w in pdn.ring.widths) or any(s < 0 for s in pdn.ring.spacings):
            raise ValueError("pdn.ring.widths must be > 0 and pdn.ring.spacings >= 0")
        if any(o < 0 for o in pdn.ring.core_offsets):
            raise ValueError("pdn.ring.core_offsets must be >= 0")
        supply_nets = [pdn.power_net, pdn.ground_net, pdn.io_power_net, pdn.io_ground_net]
        if len(set(supply_nets)) != len(supply_nets):
            raise ValueError(f"pdn supply net names must be distinct: {supply_nets}")

        pads = self.pads
        for name in ("io_length", "io_width", "bondpad_size", "site_width"):
            if getattr(pads, name) <= 0:
                raise ValueError(f"pads.{name} must be > 0")
        if pads.sealring_offset < 0:
            raise ValueError("pads.sealring_offset must be >= 0")
        bad_sides = sorted(s.value for s, n in pads.pads_per_side.items() if n < 0)
        if bad_sides:
            raise ValueError(f"pads.pads_per_side must be >= 0 (sides: {', '.join(bad_sides)})")
        if not pads.fillers or any(f.width <= 0 for f in pads.fillers):
            raise ValueError("pads.fillers must list at least one filler with width > 0")
        along, _ = pads.bondpad_offset
        if along < 0 or along + pads.bondpad_size > pads.io_width + 1e-9:
            raise ValueError(
                f"pads.bondpad_offset along-side value {along} places the bond pad outside the pad width"
            )
        if 2 * pads.pad_margin >= min(die.width, die.height):
            raise ValueError(
                f"die_area {self.die_area} leaves no room for pads inside a margin of {pads.pad_margin} per edge"
            )

        return self


def _parse_area(value: str) -> list[float]:
    parts = value.replace(",", " ").split()
    if len(parts) != 4:
        raise ConfigurationError(f"Area must have 4 coordinates, got '{value}'")
    return [float(p) for p in parts]


# Environment variable -> (path into the raw config, converter).
ENV_OVERRIDES: dict[str, tuple[tuple[str, ...], Any]] = {
    "DESIGN_NAME": (("design_name",), str),
    "DIE_AREA": (("die_area",), _parse_area),
    "CORE_AREA": (("core_area",), _parse_area),
    "FP_PDN_VERTICAL_LAYER": (("pdn", "vertical_layer"), str),
    "FP_PDN_HORIZONTAL_LAYER": (("pdn", "horizontal_layer"), str),
    "FP_PDN_RAIL_LAYER": (("pdn", "rail_layer"), str),
    "FP_PDN_RAIL_WIDTH": (("pdn", "rail_width"), float),
    "FP_PDN_VPITCH": (("pdn", "vpitch"), float),
    "FP_PDN_HPITCH": (("pdn", "hpitch"), float),
    "FP_PDN_VWIDTH": (("pdn", "vwidth"), float),
    "FP_PDN_HWIDTH": (("pdn", "hwidth"), float),
}


def apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay environment variables onto a raw config mapping."""
    for var, (path, convert) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or not value.strip():
            continue
        try:
            converted = convert(value)
        except ValueError as exc:
            raise ConfigurationError(f"Environment variable {var}='{value}' is invalid: {exc}") from exc
        target = raw
        for key in path[:-1]:
            # An empty section (`pdn:` with no keys) loads as None.
            if target.get(key) is None:
                target[key] = {}
            target = target[key]
            if not isinstance(target, dict):
                raise ConfigurationError(f"Cannot apply {var}: '{key}' must be a mapping")
        target[path[-1]] = converted
        logger.debug("%s overrides %s = %r", var, ".".join(path), converted)
    return raw


def load_config(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Config:
    """Load and validate a YAML configuration file with environment overrides."""
    raw: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{path}: top level must be a mapping")

    raw = apply_env_overrides(raw, os.environ if environ is None else environ)

    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
