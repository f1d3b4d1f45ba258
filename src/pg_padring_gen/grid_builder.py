"""Core power grid generation: ring, follow-pin rails, mesh stripes and vias."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math

from pg_padring_gen.config import PdnConfig
from pg_padring_gen.errors import ConfigurationError, ConnectivityError
from pg_padring_gen.geometry import (
    EPS,
    GridGeometry,
    Layer,
    LayerConnection,
    RailRequest,
    Rect,
    Shape,
    Via,
    connected_components,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridSpec:
    """Immutable grid parameters resolved from configuration."""

    power_net: str
    ground_net: str
    vertical_layer: str
    horizontal_layer: str
    rail_layer: str
    rail_width: float
    ring_widths: tuple[float, float]  # (vertical bars, horizontal bars)
    ring_spacings: tuple[float, float]
    ring_core_offsets: tuple[float, float]  # (x, y)
    vwidth: float
    vpitch: float
    hwidth: float
    hpitch: float
    stripe_offset: float = 0.0
    row_height: float = 3.78

    @classmethod
    def from_config(cls, pdn: PdnConfig) -> GridSpec:
        return cls(
            power_net=pdn.power_net,
            ground_net=pdn.ground_net,
            vertical_layer=pdn.vertical_layer,
            horizontal_layer=pdn.horizontal_layer,
            rail_layer=pdn.rail_layer,
            rail_width=pdn.rail_width,
            ring_widths=tuple(pdn.ring.widths),
            ring_spacings=tuple(pdn.ring.spacings),
            ring_core_offsets=tuple(pdn.ring.core_offsets),
            vwidth=pdn.vwidth,
            vpitch=pdn.vpitch,
            hwidth=pdn.hwidth,
            hpitch=pdn.hpitch,
            stripe_offset=pdn.stripe_offset,
            row_height=pdn.row_height,
        )

    @property
    def nets(self) -> list[str]:
        """Ring order, innermost first."""
        return [self.power_net, self.ground_net]

    @property
    def layers(self) -> list[Layer]:
        return [
            Layer(self.rail_layer, "horizontal"),
            Layer(self.vertical_layer, "vertical"),
            Layer(self.horizontal_layer, "horizontal"),
        ]


def _ring_extent(core: Rect, spec: GridSpec, index: int) -> Rect:
    """Outer boundary of ring INDEX (0 = innermost)."""
    wv, wh = spec.ring_widths
    sv, sh = spec.ring_spacings
    off_x, off_y = spec.ring_core_offsets
    dx = off_x + index * (wv + sv) + wv
    dy = off_y + index * (wh + sh) + wh
    return Rect(core.x_min - dx, core.y_min - dy, core.x_max + dx, core.y_max + dy)


def _generate_ring(core: Rect, spec: GridSpec) -> list[Shape]:
    """Two concentric rings around the core, one per supply net."""
    shapes: list[Shape] = []
    wv, wh = spec.ring_widths

    for i, net in enumerate(spec.nets):
        outer = _ring_extent(core, spec, i)
        bars = {
            "south": (spec.horizontal_layer, "horizontal",
                      Rect(outer.x_min, outer.y_min, outer.x_max, outer.y_min + wh)),
            "north": (spec.horizontal_layer, "horizontal",
                      Rect(outer.x_min, outer.y_max - wh, outer.x_max, outer.y_max)),
            "west": (spec.vertical_layer, "vertical",
                     Rect(outer.x_min, outer.y_min, outer.x_min + wv, outer.y_max)),
            "east": (spec.vertical_layer, "vertical",
                     Rect(outer.x_max - wv, outer.y_min, outer.x_max, outer.y_max)),
        }
        for side, (layer, direction, rect) in bars.items():
            shapes.append(
                Shape(
                    name=f"ring_{net}_{side}",
                    kind="ring",
                    layer=layer,
                    direction=direction,
                    rect=rect,
                    net=net,
                )
            )
    return shapes


def row_boundaries(core: Rect, row_height: float) -> list[float]:
    """Row edges tiling the core from its bottom edge."""
    n_rows = int(math.floor(core.height / row_height + EPS))
    if n_rows < 1:
        raise ConfigurationError(
            f"Core height {core.height} is smaller than one row of height {row_height}"
        )
    return [core.y_min + k * row_height for k in range(n_rows + 1)]


def _generate_rails(core: Rect, spec: GridSpec, boundaries: list[float]) -> list[Shape]:
    """Follow-pin rails on every row edge, ground first at the bottom edge."""
    rails: list[Shape] = []
    half_w = spec.rail_width / 2.0
    for k, y in enumerate(boundaries):
        net = spec.ground_net if k % 2 == 0 else spec.power_net
        rails.append(
            Shape(
                name=f"rail_{k}_{net}",
                kind="rail",
                layer=spec.rail_layer,
                direction="horizontal",
                rect=Rect(core.x_min, y - half_w, core.x_max, y + half_w),
                net=net,
            )
        )
    return rails


def _generate_stripes(core: Rect, spec: GridSpec) -> list[Shape]:
    """Power/ground stripe pairs on both mesh layers, extended to their own ring."""
    stripes: list[Shape] = []
    extents = {net: _ring_extent(core, spec, i) for i, net in enumerate(spec.nets)}

    layers = (
        (spec.vertical_layer, "vertical", spec.vwidth, spec.vpitch, core.x_min, core.x_max),
        (spec.horizontal_layer, "horizontal", spec.hwidth, spec.hpitch, core.y_min, core.y_max),
    )
    for layer, direction, width, pitch, lo, hi in layers:
        half_w = width / 2.0
        for net_idx, net in enumerate(spec.nets):
            ring = extents[net]
            k = 0
            while True:
                pos = lo + spec.stripe_offset + net_idx * pitch / 2.0 + k * pitch
                if pos > hi + EPS:
                    break
                if direction == "vertical":
                    rect = Rect(pos - half_w, ring.y_min, pos + half_w, ring.y_max)
                else:
                    rect = Rect(ring.x_min, pos - half_w, ring.x_max, pos + half_w)
                stripes.append(
                    Shape(
                        name=f"{layer}_stripe_{net}_{k}",
                        kind="stripe",
                        layer=layer,
                        direction=direction,
                        rect=rect,
                        net=net,
                    )
                )
                k += 1
    return stripes


def _place_vias(shapes: list[Shape], connections: list[LayerConnection]) -> list[Via]:
    """Place a via on every same-net intersection of each connected layer pair."""
    vias: list[Via] = []

    by_layer: dict[str, list[Shape]] = {}
    for s in shapes:
        by_layer.setdefault(s.layer, []).append(s)

    for conn in connections:
        for lower in by_layer.get(conn.lower, []):
            for upper in by_layer.get(conn.upper, []):
                if lower.net != upper.net:
                    continue
                overlap = lower.rect.intersection(upper.rect)
                if overlap is None:
                    continue
                vias.append(Via(lower=lower, upper=upper, rect=overlap, net=lower.net))
    return vias


def check_connectivity(grid: GridGeometry) -> None:
    """Require one connected component per net across shapes and vias."""
    index = {id(s): i for i, s in enumerate(grid.shapes)}
    edges = [(index[id(v.lower)], index[id(v.upper)]) for v in grid.vias]

    # Same-layer overlaps of one net are electrically joined as well.
    for i, a in enumerate(grid.shapes):
        for j in range(i + 1, len(grid.shapes)):
            b = grid.shapes[j]
            if a.layer != b.layer or not a.rect.overlaps(b.rect):
                continue
            if a.net != b.net:
                raise ConnectivityError(f"Short on {a.layer} between {a.name} ({a.net}) and {b.name} ({b.net})")
            edges.append((i, j))

    components = connected_components(len(grid.shapes), edges)
    by_net: dict[str, list[list[int]]] = {}
    for comp in components:
        by_net.setdefault(grid.shapes[comp[0]].net, []).append(comp)

    for net, comps in by_net.items():
        if len(comps) == 1:
            continue
        isolated = [grid.shapes[i].name for comp in comps[1:] for i in comp]
        raise ConnectivityError(
            f"Net {net} is split into {len(comps)} components; "
            f"{len(isolated)} shape(s) not connected to the main grid, e.g. {', '.join(isolated[:5])}"
        )


def build_grid(
    core: Rect, spec: GridSpec, rows: list[float] | None = None, die: Rect | None = None
) -> GridGeometry:
    """Build ring, rails and mesh for CORE and validate connectivity.

    ROWS are the cell row edges from placement; when omitted they are derived
    from the configured row height. When DIE is given the outer ring, and with
    it every stripe, must lie inside it.
    """
    if die is not None:
        outer = _ring_extent(core, spec, len(spec.nets) - 1)
        if not die.contains(outer):
            raise ConfigurationError(
                f"Power ring extent {outer.as_tuple()} does not fit inside die area {die.as_tuple()}; "
                f"shrink the core area or the ring offsets"
            )

    boundaries = sorted(rows) if rows else row_boundaries(core, spec.row_height)
    outside = [y for y in boundaries if not (core.y_min - EPS <= y <= core.y_max + EPS)]
    if outside:
        raise ConfigurationError(f"Row boundaries outside the core area: {outside}")

    ring = _generate_ring(core, spec)
    rails = _generate_rails(core, spec, boundaries)
    stripes = _generate_stripes(core, spec)
    logger.info(
        "Grid shapes: %d ring bars, %d rails on %s, %d stripes",
        len(ring),
        len(rails),
        spec.rail_layer,
        len(stripes),
    )

    connections = [
        LayerConnection(spec.rail_layer, spec.vertical_layer),
        LayerConnection(spec.vertical_layer, spec.horizontal_layer),
    ]
    shapes = [*ring, *rails, *stripes]
    vias = _place_vias(shapes, connections)
    logger.info(
        "Connected %s <-> %s <-> %s with %d vias",
        spec.rail_layer,
        spec.vertical_layer,
        spec.horizontal_layer,
        len(vias),
    )

    grid = GridGeometry(
        shapes=shapes,
        vias=vias,
        connections=connections,
        rail_request=RailRequest(layer=spec.rail_layer, width=spec.rail_width),
        row_boundaries=boundaries,
    )
    check_connectivity(grid)
    return grid
