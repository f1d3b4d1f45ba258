"""YAML layout artifact for downstream placement, routing and verification."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from pg_padring_gen.geometry import Rect
from pg_padring_gen.registry import DesignDatabase


def _rect(rect: Rect) -> list[float]:
    return [round(v, 6) for v in rect.as_tuple()]


def layout_to_dict(db: DesignDatabase) -> dict[str, Any]:
    """Plain-data view of the finished design database."""
    data: dict[str, Any] = {
        "design": db.design_name,
        "nets": [
            {"name": n.name, "signal_class": n.signal_class.value, "special": n.special}
            for n in db.nets.values()
        ],
        "connections": [
            {"instance": ref.instance, "pin": ref.pin, "net": net}
            for ref, net in sorted(db.pin_nets.items(), key=lambda kv: (kv[0].instance, kv[0].pin))
        ],
    }

    grid = db.grid
    if grid is not None:
        data["grid"] = {
            "rail_request": None
            if grid.rail_request is None
            else {
                "layer": grid.rail_request.layer,
                "width": grid.rail_request.width,
                "follow_pins": grid.rail_request.follow_pins,
            },
            "layer_connections": [[c.lower, c.upper] for c in grid.connections],
            "shapes": [
                {"name": s.name, "kind": s.kind, "layer": s.layer, "net": s.net, "rect": _rect(s.rect)}
                for s in grid.shapes
            ],
            "vias": [
                {"layers": list(v.layers), "net": v.net, "rect": _rect(v.rect)}
                for v in grid.vias
            ],
        }

    ring = db.pad_ring
    if ring is not None:
        data["pads"] = [
            {
                "name": p.name,
                "master": p.master,
                "category": p.category.value,
                "side": p.side.value,
                "index": p.index,
                "coordinate": round(p.coordinate, 6),
                "rect": _rect(p.rect),
            }
            for p in ring.pads
        ]
        for kind in ("corner", "filler", "bondpad"):
            data[f"{kind}s"] = [
                {"name": e.name, "master": e.master, "rect": _rect(e.rect), "nets": list(e.nets)}
                for e in ring.elements_of(kind)
            ]
        data["abutments"] = [[a.element_a, a.element_b, a.net] for a in ring.abutments]

    return data


def write_layout(db: DesignDatabase, path: str | Path) -> None:
    path = Path(path)
    with open(path, "w") as f:
        yaml.safe_dump(layout_to_dict(db), f, sort_keys=False)
