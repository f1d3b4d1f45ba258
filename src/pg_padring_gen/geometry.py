"""Geometry data model for the power grid and pad ring."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Literal

from pg_padring_gen.errors import ConfigurationError

# Coordinates are microns; anything closer than this is coincident.
EPS = 1e-6


class SignalClass(str, Enum):
    POWER = "POWER"
    GROUND = "GROUND"
    SIGNAL = "SIGNAL"


class Side(str, Enum):
    """Die perimeter sides in pad distribution order."""

    SOUTH = "south"
    EAST = "east"
    NORTH = "north"
    WEST = "west"

    @property
    def horizontal(self) -> bool:
        """South and north pads advance along X."""
        return self in (Side.SOUTH, Side.NORTH)


SIDE_ORDER: tuple[Side, ...] = (Side.SOUTH, Side.EAST, Side.NORTH, Side.WEST)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, (x_min, y_min, x_max, y_max) in microns."""

    x_min: float
    y_min: float
    x_max: float
    y_max: float

    def __post_init__(self) -> None:
        if not (self.x_min < self.x_max and self.y_min < self.y_max):
            raise ConfigurationError(
                f"Invalid rectangle ({self.x_min}, {self.y_min}, {self.x_max}, {self.y_max}): "
                "requires x_min < x_max and y_min < y_max"
            )

    @classmethod
    def from_sequence(cls, values: Iterable[float]) -> Rect:
        coords = [float(v) for v in values]
        if len(coords) != 4:
            raise ConfigurationError(f"Rectangle needs 4 coordinates, got {len(coords)}: {coords}")
        return cls(*coords)

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x_min, self.y_min, self.x_max, self.y_max)

    def contains(self, other: Rect) -> bool:
        return (
            self.x_min <= other.x_min + EPS
            and self.y_min <= other.y_min + EPS
            and other.x_max <= self.x_max + EPS
            and other.y_max <= self.y_max + EPS
        )

    def overlaps(self, other: Rect) -> bool:
        """True when the two rectangles share a region of positive area."""
        return (
            min(self.x_max, other.x_max) - max(self.x_min, other.x_min) > EPS
            and min(self.y_max, other.y_max) - max(self.y_min, other.y_min) > EPS
        )

    def intersection(self, other: Rect) -> Rect | None:
        if not self.overlaps(other):
            return None
        return Rect(
            max(self.x_min, other.x_min),
            max(self.y_min, other.y_min),
            min(self.x_max, other.x_max),
            min(self.y_max, other.y_max),
        )

    def touches(self, other: Rect) -> bool:
        """True when the rectangles abut along an edge of positive length."""
        x_overlap = min(self.x_max, other.x_max) - max(self.x_min, other.x_min)
        y_overlap = min(self.y_max, other.y_max) - max(self.y_min, other.y_min)
        vertical_edge = (
            abs(self.x_max - other.x_min) < EPS or abs(other.x_max - self.x_min) < EPS
        ) and y_overlap > EPS
        horizontal_edge = (
            abs(self.y_max - other.y_min) < EPS or abs(other.y_max - self.y_min) < EPS
        ) and x_overlap > EPS
        return vertical_edge or horizontal_edge


@dataclass(frozen=True)
class Layer:
    """A routing layer; direction only groups shapes."""

    name: str
    direction: Literal["vertical", "horizontal"]


@dataclass
class Net:
    """A named logical conductor."""

    name: str
    signal_class: SignalClass
    special: bool = False


@dataclass
class Shape:
    """A metal shape of the PDN."""

    name: str
    kind: Literal["ring", "rail", "stripe"]
    layer: str
    direction: Literal["vertical", "horizontal"]
    rect: Rect
    net: str


@dataclass
class Via:
    """A via at the intersection of two same-net shapes on connected layers."""

    lower: Shape
    upper: Shape
    rect: Rect
    net: str

    @property
    def layers(self) -> tuple[str, str]:
        return (self.lower.layer, self.upper.layer)


@dataclass(frozen=True)
class LayerConnection:
    """A declarative obligation: every same-net crossing of the two layers gets a via."""

    lower: str
    upper: str


@dataclass(frozen=True)
class RailRequest:
    """Follow-pins rail request handed to the cell-placement collaborator."""

    layer: str
    width: float
    follow_pins: bool = True


@dataclass
class GridGeometry:
    """Complete generated power grid."""

    shapes: list[Shape] = field(default_factory=list)
    vias: list[Via] = field(default_factory=list)
    connections: list[LayerConnection] = field(default_factory=list)
    rail_request: RailRequest | None = None
    row_boundaries: list[float] = field(default_factory=list)

    def shapes_of(self, kind: str) -> list[Shape]:
        return [s for s in self.shapes if s.kind == kind]


class PadCategory(str, Enum):
    POWER = "power"
    SIGNAL = "signal"


@dataclass
class IoRow:
    """Transient site row hosting the pads of one side."""

    side: Side
    rect: Rect
    site_width: float


@dataclass
class PadInstance:
    """A placed pad."""

    name: str
    master: str
    category: PadCategory
    side: Side
    index: int
    coordinate: float  # um along the side's axis, before site snapping
    rect: Rect


@dataclass
class RingElement:
    """Any element placed on the perimeter."""

    name: str
    master: str
    kind: Literal["pad", "filler", "corner", "bondpad"]
    side: Side | None
    rect: Rect
    nets: tuple[str, ...] = ()


@dataclass(frozen=True)
class Abutment:
    """Connection implied by two touching elements sharing a net."""

    element_a: str
    element_b: str
    net: str


@dataclass
class PadRing:
    """Finished perimeter."""

    pads: list[PadInstance] = field(default_factory=list)
    elements: list[RingElement] = field(default_factory=list)
    abutments: list[Abutment] = field(default_factory=list)
    discovered: int = 0

    def elements_of(self, kind: str) -> list[RingElement]:
        return [e for e in self.elements if e.kind == kind]


def connected_components(count: int, edges: Iterable[tuple[int, int]]) -> list[list[int]]:
    """Group items 0..COUNT-1 into components joined by EDGES (union-find)."""
    parent = list(range(count))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for a, b in edges:
        ra, rb = find(a), find(b)
        if ra != rb:
            parent[rb] = ra

    groups: dict[int, list[int]] = {}
    for i in range(count):
        groups.setdefault(find(i), []).append(i)
    return sorted(groups.values(), key=lambda g: (-len(g), g[0]))
