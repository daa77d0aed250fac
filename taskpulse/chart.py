"""Chart geometry for the 14-day cumulative area chart."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

Point = tuple[float, float]

GRID_STEPS = (0.0, 0.25, 0.5, 0.75, 1.0)
EDGE_PAD_RATIO = 0.03


def nice_rounded_max(n: float) -> float:
    """Round an axis ceiling up to 10/20/50/100, then 2, 5 or 10 times a power of ten."""
    if n <= 10:
        return 10
    if n <= 20:
        return 20
    if n <= 50:
        return 50
    if n <= 100:
        return 100
    p = 10 ** math.floor(math.log10(n))
    m = n / p
    if m <= 2:
        return 2 * p
    if m <= 5:
        return 5 * p
    return 10 * p


def _num(v: float) -> str:
    """Compact number for SVG path data: '18', '80.57'."""
    s = f"{v:.2f}".rstrip("0").rstrip(".")
    return "0" if s == "-0" else s


def smooth_path(points: list[Point]) -> str:
    """Quadratic curve through the midpoints of consecutive points.

    Each original point acts as the control point of a segment ending at the
    next midpoint, so the curve passes near interior points rather than
    through them. Fewer than two points give an empty path.
    """
    if len(points) < 2:
        return ""
    x0, y0 = points[0]
    parts = [f"M {_num(x0)} {_num(y0)}"]
    for (px, py), (cx, cy) in zip(points, points[1:]):
        parts.append(f"Q {_num(px)} {_num(py)} {_num((px + cx) / 2)} {_num((py + cy) / 2)}")
    lx, ly = points[-1]
    parts.append(f"T {_num(lx)} {_num(ly)}")
    return " ".join(parts)


@dataclass
class AreaChart:
    width: int = 900
    height: int = 240
    padding: int = 18
    y_max: float = 10
    data_max: float = 0
    points: list[Point] = field(default_factory=list)
    line_path: str = ""
    area_path: str = ""
    grid_ys: list[float] = field(default_factory=list)
    x_labels: list[tuple[float, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "yMax": self.y_max,
            "dataMax": self.data_max,
            "points": [{"x": round(x, 2), "y": round(y, 2)} for x, y in self.points],
            "linePath": self.line_path,
            "areaPath": self.area_path,
            "gridYs": [round(y, 2) for y in self.grid_ys],
            "xLabels": [{"x": round(x, 2), "label": lab} for x, lab in self.x_labels],
        }


def build_area_chart(
    values: list[float],
    labels: list[str],
    width: int = 900,
    height: int = 240,
    padding: int = 18,
) -> AreaChart:
    """Map a numeric series onto chart coordinates and build its paths."""
    chart = AreaChart(width=width, height=height, padding=padding)
    inner_w = width - padding * 2
    inner_h = height - padding * 2
    chart.grid_ys = [padding + k * inner_h for k in GRID_STEPS]
    if not values:
        return chart

    data_max = max(0, *values)
    y_min = 0
    y_max = nice_rounded_max(max(1, data_max))
    chart.data_max = data_max
    chart.y_max = y_max

    last = max(1, len(values) - 1)
    core: list[Point] = []
    for i, v in enumerate(values):
        x = padding + (i / last) * inner_w
        t = (v - y_min) / ((y_max - y_min) or 1)
        core.append((x, padding + (1 - t) * inner_h))
    chart.points = core

    # Synthetic edge points only flatten the curve ends; they are not data.
    pad_x = inner_w * EDGE_PAD_RATIO
    padded = [(core[0][0] - pad_x, core[0][1]), *core, (core[-1][0] + pad_x, core[-1][1])]

    chart.line_path = smooth_path(padded)
    base_y = padding + inner_h
    chart.area_path = (
        f"{chart.line_path} L {_num(padded[-1][0])} {_num(base_y)} "
        f"L {_num(padded[0][0])} {_num(base_y)} Z"
    )

    for i, lab in enumerate(labels[:len(core)]):
        if i % 2 == 0 or i == len(labels) - 1:
            chart.x_labels.append((core[i][0], lab))
    return chart


def render_svg(chart: AreaChart) -> str:
    """Minimal standalone SVG for an AreaChart."""
    w, h = chart.width, chart.height
    p = chart.padding
    grid = "".join(
        f'<line x1="{p}" x2="{w - p}" y1="{_num(y)}" y2="{_num(y)}" stroke="#3f3f46" stroke-width="1"/>'
        for y in chart.grid_ys
    )
    dots = "".join(
        f'<circle cx="{_num(x)}" cy="{_num(y)}" r="3.6" fill="white" opacity="0.9"/>'
        for x, y in chart.points
    )
    labels = "".join(
        f'<text x="{_num(x)}" y="{h - 6}" text-anchor="middle" font-size="11" '
        f'fill="rgba(255,255,255,0.45)">{lab}</text>'
        for x, lab in chart.x_labels
    )
    paths = ""
    if chart.line_path:
        paths = (
            f'<path d="{chart.area_path}" fill="rgba(139,92,246,0.32)" opacity="0.95"/>'
            f'<path d="{chart.line_path}" fill="none" stroke="#8b5cf6" stroke-width="3.25" '
            f'stroke-linejoin="round" stroke-linecap="round"/>'
        )
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" '
        f'viewBox="0 0 {w} {h}" role="img" aria-label="Area chart of cumulative done tasks">'
        f'<g opacity="0.35">{grid}</g>{paths}{dots}{labels}</svg>'
    )
