"""I/O pad ring placement around the die perimeter.

Pads are discovered from the inventory, classified once into power and signal
pads, and consumed power-first across the South, East, North and West rows.
Each pad sits centered in an equal-width slot of the usable span between the
corner cells. The remaining row gaps are closed with fillers, corners and bond
pads are attached, and touching elements sharing a net are connected by
abutment.
"""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
import logging
import math
from typing import Iterable

from pg_padring_gen.config import PadConfig
from pg_padring_gen.errors import (
    ConfigurationError,
    ConnectivityError,
    CountMismatchError,
    DiscoveryError,
)
from pg_padring_gen.geometry import (
    EPS,
    SIDE_ORDER,
    Abutment,
    IoRow,
    PadCategory,
    PadInstance,
    PadRing,
    Rect,
    RingElement,
    Side,
    connected_components,
)
from pg_padring_gen.inventory import InstanceRecord, PinRef
from pg_padring_gen.registry import DesignDatabase

logger = logging.getLogger(__name__)

# Substrings (case-insensitive) that mark a pad as a supply pad.
POWER_PAD_LEXICON = ("vdd", "vss", "iovdd", "iovss")

RING_KINDS = ("pad", "filler", "corner")


def classify_pad(name: str) -> PadCategory:
    lowered = name.lower()
    if any(key in lowered for key in POWER_PAD_LEXICON):
        return PadCategory.POWER
    return PadCategory.SIGNAL


@dataclass(frozen=True)
class PadCandidate:
    """A discovered pad awaiting placement."""

    name: str
    master: str
    category: PadCategory


def discover_pads(instances: Iterable[InstanceRecord], params: PadConfig) -> list[PadCandidate]:
    """Return the placement sequence: sorted by name, power pads first."""
    found = [
        inst
        for inst in instances
        if fnmatchcase(inst.master, params.master_pattern) and fnmatchcase(inst.name, params.instance_pattern)
    ]
    if not found:
        raise DiscoveryError(
            f"No I/O pads found (master ~ {params.master_pattern}, name ~ {params.instance_pattern})"
        )

    candidates = [
        PadCandidate(name=inst.name, master=inst.master, category=classify_pad(inst.name))
        for inst in sorted(found, key=lambda i: i.name)
    ]
    power = [c for c in candidates if c.category == PadCategory.POWER]
    signal = [c for c in candidates if c.category == PadCategory.SIGNAL]
    logger.info(
        "Found %d I/O pads to place (Power: %d, Signal: %d).",
        len(candidates),
        len(power),
        len(signal),
    )
    return power + signal


def distribute_pads(
    sequence: list[PadCandidate], pads_per_side: dict[Side, int]
) -> dict[Side, list[PadCandidate]]:
    """Consume SEQUENCE from the front, filling sides in South, East, North, West order."""
    assignment: dict[Side, list[PadCandidate]] = {}
    cursor = 0
    for side in SIDE_ORDER:
        n_side = pads_per_side.get(side, 0)
        assignment[side] = sequence[cursor : cursor + n_side]
        cursor += len(assignment[side])
    return assignment


def side_dimension(side: Side, die: Rect) -> float:
    return die.width if side.horizontal else die.height


def slot_spacing(total: int, dimension: float, params: PadConfig) -> float:
    """Free space left beside each pad when TOTAL equal slots tile the usable span."""
    usable_span = dimension - 2 * params.pad_margin
    return usable_span / total - params.io_width


def pad_location(index: int, total: int, dimension: float, params: PadConfig) -> float:
    """Offset of pad INDEX of TOTAL from the die origin along the side's axis."""
    spacing = slot_spacing(total, dimension, params)
    if spacing < 0:
        raise ConfigurationError(
            f"{total} pads of width {params.io_width} do not fit a side of {dimension} "
            f"(slot spacing {spacing:.3f})"
        )
    return params.pad_margin + (params.io_width + spacing) * index + spacing / 2


def side_rect(
    side: Side, die: Rect, along_start: float, along_end: float, depth_start: float, depth_end: float
) -> Rect:
    """Rect spanning an absolute along-side range at a depth range inward from the die edge."""
    if side == Side.SOUTH:
        return Rect(along_start, die.y_min + depth_start, along_end, die.y_min + depth_end)
    if side == Side.NORTH:
        return Rect(along_start, die.y_max - depth_end, along_end, die.y_max - depth_start)
    if side == Side.WEST:
        return Rect(die.x_min + depth_start, along_start, die.x_min + depth_end, along_end)
    return Rect(die.x_max - depth_end, along_start, die.x_max - depth_start, along_end)


def _along(side: Side, rect: Rect) -> tuple[float, float]:
    return (rect.x_min, rect.x_max) if side.horizontal else (rect.y_min, rect.y_max)


def make_io_rows(die: Rect, params: PadConfig) -> list[IoRow]:
    """IO site rows between the corner cells, inset by the bond pad and seal ring."""
    rows: list[IoRow] = []
    for side in SIDE_ORDER:
        lo = die.x_min if side.horizontal else die.y_min
        hi = die.x_max if side.horizontal else die.y_max
        rect = side_rect(
            side,
            die,
            lo + params.pad_margin,
            hi - params.pad_margin,
            params.row_offset,
            params.row_offset + params.io_length,
        )
        rows.append(IoRow(side=side, rect=rect, site_width=params.site_width))
    return rows


def _snap(value: float, origin: float, site_width: float) -> float:
    return origin + math.floor((value - origin) / site_width + EPS) * site_width


def _place_side(
    side: Side,
    row: IoRow,
    pads: list[PadCandidate],
    n_side: int,
    die: Rect,
    params: PadConfig,
) -> list[PadInstance]:
    dimension = side_dimension(side, die)
    origin = die.x_min if side.horizontal else die.y_min
    row_start, row_end = _along(side, row.rect)

    placed: list[PadInstance] = []
    for i, pad in enumerate(pads):
        coordinate = pad_location(i, n_side, dimension, params)
        start = _snap(origin + coordinate, row_start, row.site_width)
        end = start + params.io_width
        if start < row_start - EPS or end > row_end + EPS:
            raise ConfigurationError(
                f"Pad {pad.name} at {start:.3f} on {side.value} leaves the IO row [{row_start}, {row_end}]"
            )
        rect = side_rect(side, die, start, end, params.row_offset, params.row_offset + params.io_length)
        if placed and placed[-1].rect.overlaps(rect):
            raise ConfigurationError(
                f"Pads {placed[-1].name} and {pad.name} overlap on {side.value} after snapping "
                f"to the {row.site_width} um site grid"
            )
        placed.append(
            PadInstance(
                name=pad.name,
                master=pad.master,
                category=pad.category,
                side=side,
                index=i,
                coordinate=coordinate,
                rect=rect,
            )
        )
        logger.debug("Placed %s on %s at %.3f", pad.name, side.value, start)
    return placed


def _fill_row(
    row: IoRow, pads: list[PadInstance], die: Rect, params: PadConfig, ring_nets: tuple[str, ...]
) -> list[RingElement]:
    """Close every gap in ROW with fillers, largest first."""
    side = row.side
    row_start, row_end = _along(side, row.rect)
    palette = sorted(params.fillers, key=lambda f: f.width, reverse=True)

    occupied = sorted(_along(side, p.rect) for p in pads)
    gaps: list[tuple[float, float]] = []
    cursor = row_start
    for lo, hi in occupied:
        gaps.append((cursor, lo))
        cursor = hi
    gaps.append((cursor, row_end))

    fillers: list[RingElement] = []
    for gap_start, gap_end in gaps:
        pos = gap_start
        remaining = gap_end - gap_start
        for filler in palette:
            while remaining >= filler.width - EPS:
                rect = side_rect(
                    side, die, pos, pos + filler.width, params.row_offset, params.row_offset + params.io_length
                )
                fillers.append(
                    RingElement(
                        name=f"IO_FILL_{side.name}_{len(fillers)}",
                        master=filler.master,
                        kind="filler",
                        side=side,
                        rect=rect,
                        nets=ring_nets,
                    )
                )
                pos += filler.width
                remaining -= filler.width
        if remaining > EPS:
            raise ConfigurationError(
                f"Gap [{gap_start:.3f}, {gap_end:.3f}] on {side.value} leaves {remaining:.3f} um "
                f"uncovered by the smallest filler ({palette[-1].master}, {palette[-1].width} um)"
            )
    return fillers


def _place_corners(die: Rect, params: PadConfig, ring_nets: tuple[str, ...]) -> list[RingElement]:
    lo = params.row_offset
    hi = params.row_offset + params.io_length
    corners = {
        "SOUTH_WEST": Rect(die.x_min + lo, die.y_min + lo, die.x_min + hi, die.y_min + hi),
        "SOUTH_EAST": Rect(die.x_max - hi, die.y_min + lo, die.x_max - lo, die.y_min + hi),
        "NORTH_EAST": Rect(die.x_max - hi, die.y_max - hi, die.x_max - lo, die.y_max - lo),
        "NORTH_WEST": Rect(die.x_min + lo, die.y_max - hi, die.x_min + hi, die.y_max - lo),
    }
    return [
        RingElement(
            name=f"IO_CORNER_{where}",
            master=params.corner_master,
            kind="corner",
            side=None,
            rect=rect,
            nets=ring_nets,
        )
        for where, rect in corners.items()
    ]


def _place_bondpads(
    pads: list[PadInstance], die: Rect, params: PadConfig, bond_nets: dict[str, str]
) -> list[RingElement]:
    """One bond pad per pad at a fixed offset in the pad's local frame."""
    along_offset, depth_offset = params.bondpad_offset
    depth_start = params.row_offset + depth_offset
    if depth_start < -EPS:
        raise ConfigurationError(
            f"Bond pad offset {params.bondpad_offset} places bond pads outside the die edge"
        )

    bondpads: list[RingElement] = []
    for pad in pads:
        start, _ = _along(pad.side, pad.rect)
        rect = side_rect(
            pad.side,
            die,
            start + along_offset,
            start + along_offset + params.bondpad_size,
            depth_start,
            depth_start + params.bondpad_size,
        )
        net = bond_nets.get(pad.name)
        bondpads.append(
            RingElement(
                name=f"{pad.name}_bondpad",
                master=params.bondpad_master,
                kind="bondpad",
                side=pad.side,
                rect=rect,
                nets=(net,) if net else (),
            )
        )
    return bondpads


def connect_by_abutment(elements: list[RingElement]) -> list[Abutment]:
    """Connect every pair of touching elements on each net they share."""
    abutments: list[Abutment] = []
    for i, a in enumerate(elements):
        for b in elements[i + 1 :]:
            shared = [n for n in a.nets if n in b.nets]
            if not shared or not a.rect.touches(b.rect):
                continue
            abutments.extend(Abutment(a.name, b.name, net) for net in shared)
    return abutments


def check_ring_closed(elements: list[RingElement], abutments: list[Abutment], ring_nets: tuple[str, ...]) -> None:
    """Every ring net must run unbroken through all pads, fillers and corners."""
    ring = [e for e in elements if e.kind in RING_KINDS]
    index = {e.name: i for i, e in enumerate(ring)}
    for net in ring_nets:
        edges = [
            (index[a.element_a], index[a.element_b])
            for a in abutments
            if a.net == net and a.element_a in index and a.element_b in index
        ]
        components = connected_components(len(ring), edges)
        if len(components) > 1:
            stray = [ring[i].name for comp in components[1:] for i in comp]
            raise ConnectivityError(
                f"Pad ring net {net} is broken into {len(components)} segments; "
                f"not abutted to the main ring: {', '.join(stray[:5])}"
            )


def place_pads(
    db: DesignDatabase,
    instances: Iterable[InstanceRecord],
    die: Rect,
    params: PadConfig,
    ring_nets: Iterable[str] = (),
) -> PadRing:
    """Place the discovered pads and finish the perimeter."""
    ring_nets = tuple(ring_nets)
    sequence = discover_pads(instances, params)

    # Every populated side must fit before any coordinate is computed.
    for side in SIDE_ORDER:
        n_side = params.pads_per_side.get(side, 0)
        if n_side == 0:
            continue
        spacing = slot_spacing(n_side, side_dimension(side, die), params)
        if spacing < 0:
            raise ConfigurationError(
                f"Side {side.value}: {n_side} pads of width {params.io_width} do not fit "
                f"(slot spacing {spacing:.3f} um < 0)"
            )

    db.io_rows = make_io_rows(die, params)
    try:
        pad_ring = _populate_rows(db, sequence, die, params, ring_nets)
    finally:
        # IO rows only exist while the ring is being built.
        db.io_rows = []

    db.pad_ring = pad_ring
    logger.info(
        "Pad ring finished: %d pads, %d fillers, %d corners, %d bond pads, %d abutments",
        len(pad_ring.pads),
        len(pad_ring.elements_of("filler")),
        len(pad_ring.elements_of("corner")),
        len(pad_ring.elements_of("bondpad")),
        len(pad_ring.abutments),
    )
    return pad_ring


def _populate_rows(
    db: DesignDatabase,
    sequence: list[PadCandidate],
    die: Rect,
    params: PadConfig,
    ring_nets: tuple[str, ...],
) -> PadRing:
    rows = {row.side: row for row in db.io_rows}
    assignment = distribute_pads(sequence, params.pads_per_side)

    logger.info("Placing pads with calculated coordinates...")
    placed: list[PadInstance] = []
    for side in SIDE_ORDER:
        placed += _place_side(
            side, rows[side], assignment[side], params.pads_per_side.get(side, 0), die, params
        )

    logger.info("Total pads: %d | Placed: %d", len(sequence), len(placed))
    if len(placed) != len(sequence):
        placed_names = {p.name for p in placed}
        unplaced = [c.name for c in sequence if c.name not in placed_names]
        logger.error("Not all pads were placed: expected %d, placed %d", len(sequence), len(placed))
        raise CountMismatchError(len(sequence), len(placed), unplaced)

    logger.info("Placing corner, filler, and bondpad cells...")
    bond_nets = {
        p.name: db.pin_nets[PinRef(p.name, params.bond_pin)]
        for p in placed
        if PinRef(p.name, params.bond_pin) in db.pin_nets
    }
    elements = _place_corners(die, params, ring_nets)
    for side in SIDE_ORDER:
        side_pads = [p for p in placed if p.side == side]
        for p in side_pads:
            nets = ring_nets
            bond_net = bond_nets.get(p.name)
            if bond_net and bond_net not in ring_nets:
                nets += (bond_net,)
            elements.append(RingElement(p.name, p.master, "pad", side, p.rect, nets))
        elements += _fill_row(rows[side], side_pads, die, params, ring_nets)
    elements += _place_bondpads(placed, die, params, bond_nets)

    abutments = connect_by_abutment(elements)
    if ring_nets:
        check_ring_closed(elements, abutments, ring_nets)

    return PadRing(pads=placed, elements=elements, abutments=abutments, discovered=len(sequence))
