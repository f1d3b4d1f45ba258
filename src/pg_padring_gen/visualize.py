"""Plotly 2D floorplan view of the pad ring and power grid."""

from __future__ import annotations

from pathlib import Path

import plotly.graph_objects as go

from pg_padring_gen.config import Config
from pg_padring_gen.geometry import Rect
from pg_padring_gen.registry import DesignDatabase

# Layer color map
LAYER_COLORS: dict[str, str] = {
    "Metal1": "rgba(40, 120, 220, 0.70)",
    "Metal2": "rgba(40, 120, 220, 0.70)",
    "Metal3": "rgba(40, 170, 90, 0.70)",
    "Metal4": "rgba(40, 170, 90, 0.70)",
    "Metal5": "rgba(220, 150, 50, 0.70)",
    "TopMetal1": "rgba(210, 70, 70, 0.70)",
    "TopMetal2": "rgba(190, 50, 50, 0.70)",
}
VIA_COLOR = "rgba(150, 150, 150, 0.85)"
OUTLINE_COLOR = "rgba(0, 0, 0, 0.8)"
ELEMENT_COLORS: dict[str, str] = {
    "pad": "rgba(220, 200, 60, 0.60)",
    "filler": "rgba(170, 170, 170, 0.45)",
    "corner": "rgba(120, 80, 160, 0.55)",
    "bondpad": "rgba(230, 180, 40, 0.85)",
}


def _get_color(layer_name: str) -> str:
    return LAYER_COLORS.get(layer_name, "rgba(130, 130, 130, 0.7)")


def _append_rect(xs: list[float | None], ys: list[float | None], rect: Rect) -> None:
    xs.extend([rect.x_min, rect.x_max, rect.x_max, rect.x_min, rect.x_min, None])
    ys.extend([rect.y_min, rect.y_min, rect.y_max, rect.y_max, rect.y_min, None])


def _add_shapes(
    fig: go.Figure,
    rects: list[Rect],
    name: str,
    color: str,
    group: str,
    visible: bool | str = True,
    filled: bool = True,
) -> None:
    if not rects:
        return
    xs: list[float | None] = []
    ys: list[float | None] = []
    for rect in rects:
        _append_rect(xs, ys, rect)
    fig.add_trace(
        go.Scatter(
            x=xs,
            y=ys,
            mode="lines",
            fill="toself" if filled else None,
            fillcolor=color if filled else None,
            line=dict(color=color if filled else OUTLINE_COLOR, width=0.6),
            name=name,
            legendgroup=group,
            hoverinfo="name",
            visible=visible,
        )
    )


def render_floorplan(
    db: DesignDatabase,
    config: Config,
    output_path: str | Path,
    open_browser: bool = False,
) -> None:
    """Render die outline, grid shapes, vias and pad ring elements to HTML."""
    fig = go.Figure()

    _add_shapes(fig, [config.die_rect], "Die", OUTLINE_COLOR, "outline", filled=False)
    if config.core_area is not None:
        _add_shapes(fig, [config.core_rect()], "Core", OUTLINE_COLOR, "outline", filled=False)

    if db.grid is not None:
        by_layer_net: dict[tuple[str, str, str], list[Rect]] = {}
        for shape in db.grid.shapes:
            by_layer_net.setdefault((shape.kind, shape.layer, shape.net), []).append(shape.rect)
        for (kind, layer, net), rects in sorted(by_layer_net.items()):
            # Rails are dense; keep them off until requested.
            visible = "legendonly" if kind == "rail" else True
            _add_shapes(fig, rects, f"{layer}:{kind}:{net}", _get_color(layer), layer, visible)

        _add_shapes(
            fig,
            [v.rect for v in db.grid.vias],
            "Vias",
            VIA_COLOR,
            "vias",
            visible="legendonly",
        )

    if db.pad_ring is not None:
        for kind, color in ELEMENT_COLORS.items():
            rects = [e.rect for e in db.pad_ring.elements_of(kind)]
            _add_shapes(fig, rects, kind.title() + "s", color, kind)

        fig.add_trace(
            go.Scatter(
                x=[(p.rect.x_min + p.rect.x_max) / 2.0 for p in db.pad_ring.pads],
                y=[(p.rect.y_min + p.rect.y_max) / 2.0 for p in db.pad_ring.pads],
                mode="text",
                text=[p.name for p in db.pad_ring.pads],
                textfont=dict(size=9),
                name="Pad Names",
                hoverinfo="skip",
            )
        )

    fig.update_layout(
        title=f"Floorplan - {db.design_name}",
        width=1050,
        height=1050,
        legend=dict(orientation="v"),
    )
    fig.update_xaxes(title_text="X (um)")
    fig.update_yaxes(title_text="Y (um)", scaleanchor="x", scaleratio=1)

    fig.write_html(str(output_path))
    if open_browser:
        import webbrowser

        webbrowser.open(f"file://{Path(output_path).resolve()}")
