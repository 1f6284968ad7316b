"""
WindPrice — Output Renderers
Pure formatting of merged wind/price entries: no I/O, no error paths.

  to_json    JSON array, one object per line, floats fixed to 2 decimals
  to_html    Chart.js page embedding the four series as script arrays
  root_html  navigation page linking both views
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

import jinja2

from data.geo import Location
from data.merge import MergedEntry

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_jinja_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=True,
)


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def to_json(entries: Sequence[MergedEntry]) -> str:
    """
    Render entries as a JSON array with a trailing newline:

        [
        {"hour": "2023-02-15T14:00", "speed": 3.20, "gust": 5.10, "price": 0.45},
        ...
        ]
    """
    lines = [
        f'{{"hour": {json.dumps(e.hour)}, "speed": {_fmt(e.wind_speed)}, '
        f'"gust": {_fmt(e.wind_gust)}, "price": {_fmt(e.price)}}}'
        for e in entries
    ]
    return "[\n" + ",\n".join(lines) + "\n]\n"


def chart_series(entries: Sequence[MergedEntry]) -> dict[str, list[Any]]:
    """Split entries into the four equal-length arrays the chart consumes."""
    return {
        "times":  [e.hour for e in entries],
        "speeds": [_fmt(e.wind_speed) for e in entries],
        "gusts":  [_fmt(e.wind_gust) for e in entries],
        "prices": [_fmt(e.price) for e in entries],
    }


def to_html(entries: Sequence[MergedEntry], location: Location) -> str:
    """Render the chart page for a location."""
    return _jinja_env.get_template("wind.html.j2").render(
        title=location.label,
        **chart_series(entries),
    )


def root_html(location: Location, query: str = "") -> str:
    """Render the navigation page; ``query`` (e.g. "?lat=..&long=..") is kept on the links."""
    return _jinja_env.get_template("root.html.j2").render(
        title=location.label,
        query=query,
    )
