"""Functions for generating a detailed ASCII report of the synthesized layout."""

from __future__ import annotations

from collections import Counter

from pg_padring_gen.config import Config
from pg_padring_gen.connect import rules_from_config
from pg_padring_gen.geometry import SIDE_ORDER, PadCategory
from pg_padring_gen.registry import DesignDatabase


def _grid_lines(db: DesignDatabase) -> list[str]:
    grid = db.grid
    if grid is None:
        return ["  - (no grid)"]

    lines = [
        f"  - Ring Bars: {len(grid.shapes_of('ring'))}",
        f"  - Follow-Pin Rails: {len(grid.shapes_of('rail'))}",
        f"  - Mesh Stripes: {len(grid.shapes_of('stripe'))}",
        f"  - Vias: {len(grid.vias)}",
    ]
    if grid.rail_request is not None:
        lines.append(f"  - Rail Request: {grid.rail_request.layer} width {grid.rail_request.width} um (followpins)")
    for conn in grid.connections:
        count = sum(1 for v in grid.vias if v.layers == (conn.lower, conn.upper))
        lines.append(f"  - {conn.lower} <-> {conn.upper}: {count} vias")
    stripe_counts = Counter(s.layer for s in grid.shapes_of("stripe"))
    for layer, count in sorted(stripe_counts.items()):
        lines.append(f"  - {layer}: {count} stripes")
    return lines


def generate_report(db: DesignDatabase, config: Config) -> str:
    """Generates a detailed, multi-line ASCII report of the run."""

    die = config.die_rect
    report_lines = [
        "--- Pad Ring and Power Grid Report ---",
        "",
        "** Design **",
        f"  - Name: {db.design_name}",
        f"  - Die Area: {die.x_min} {die.y_min} {die.x_max} {die.y_max}",
    ]
    if config.core_area is not None:
        report_lines.append(f"  - Core Area: {' '.join(str(v) for v in config.core_area)}")
    else:
        report_lines.append("  - Core Area: (die area)")
    report_lines.append("")

    report_lines.append("** Nets **")
    for net in db.nets.values():
        created = " (created)" if net.name in db.created_nets else ""
        special = " special" if net.special else ""
        report_lines.append(f"  - {net.name}: {net.signal_class.value}{special}{created}")
    report_lines.append("")

    report_lines.append("** Power Grid **")
    report_lines.extend(_grid_lines(db))
    report_lines.append("")

    rules = rules_from_config(config)
    report_lines.append("** Global Connections **")
    report_lines.append(f"  - Rules: {len(rules)}")
    report_lines.append(f"  - Connected Pins: {len(db.pin_nets)}")
    for index, (rule, count) in enumerate(zip(rules, db.rule_matches)):
        if count:
            report_lines.append(f"  - {rule.describe(index)}: {count} pin(s)")
    report_lines.append("")

    report_lines.append("** Pad Ring **")
    ring = db.pad_ring
    if ring is None:
        report_lines.append("  - (not placed)")
    else:
        n_power = sum(1 for p in ring.pads if p.category == PadCategory.POWER)
        report_lines.append(
            f"  - Pads Found: {ring.discovered} (Power: {n_power}, Signal: {len(ring.pads) - n_power})"
        )
        report_lines.append(f"  - Pads Placed: {len(ring.pads)}")
        for side in SIDE_ORDER:
            names = [p.name for p in ring.pads if p.side == side]
            report_lines.append(f"  - {side.value.title()}: {len(names)} {' '.join(names)}".rstrip())
        filler_counts = Counter(e.master for e in ring.elements_of("filler"))
        report_lines.append(f"  - Corners: {len(ring.elements_of('corner'))}")
        report_lines.append(f"  - Bond Pads: {len(ring.elements_of('bondpad'))}")
        report_lines.append(f"  - Fillers: {sum(filler_counts.values())}")
        for master, count in sorted(filler_counts.items()):
            report_lines.append(f"      {master}: {count}")
        report_lines.append(f"  - Abutment Connections: {len(ring.abutments)}")

    report_lines.append("\n--- End of Report ---")

    return "\n".join(report_lines)
