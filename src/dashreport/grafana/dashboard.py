"""
Grafana dashboard model.

Normalizes the two dashboard JSON shapes Grafana has served into a single
immutable ``Dashboard``:

- v4 (``SchemaVersion.V4``): panels grouped under ``rows``
- v5 (``SchemaVersion.V5``): a flat ``panels`` list where rows are panels of
  type ``row``

All titles are escaped for LaTeX once, here, so the report templates can
embed them verbatim.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Iterable, Mapping, Sequence

from dashreport.core.errors import DashboardFetchFailed

# Pixels per grid unit when sizing panels from their grid position
GRID_UNIT_PX = 40

_LATEX_ESCAPES = str.maketrans(
    {
        "\\": r"\textbackslash{}",
        "#": r"\#",
        "$": r"\$",
        "%": r"\%",
        "&": r"\&",
        "_": r"\_",
        "{": r"\{",
        "}": r"\}",
        "~": r"\textasciitilde{}",
        "^": r"\textasciicircum{}",
    }
)


class SchemaVersion(StrEnum):
    V4 = "v4"
    V5 = "v5"


class PanelType(StrEnum):
    SINGLESTAT = "singlestat"
    GRAPH = "graph"
    TEXT = "text"
    TABLE = "table"
    ROW = "row"


def sanitize(text: str) -> str:
    """Escape characters with special meaning in LaTeX."""
    return text.translate(_LATEX_ESCAPES)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Look up ``name`` in a JSON object, falling back to a case-insensitive match."""
    if not isinstance(obj, Mapping):
        return default
    if name in obj:
        return obj[name]
    lowered = name.lower()
    for key, value in obj.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return default


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class PanelSize:
    width: int
    height: int


_DEFAULT_SIZES = {
    PanelType.SINGLESTAT: PanelSize(300, 150),
    PanelType.TEXT: PanelSize(1000, 100),
}
_DEFAULT_SIZE = PanelSize(1000, 500)


@dataclass(frozen=True)
class GridPos:
    h: float = 0.0
    w: float = 0.0
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def from_dict(cls, data: Any) -> GridPos:
        return cls(
            h=_number(_field(data, "h")),
            w=_number(_field(data, "w")),
            x=_number(_field(data, "x")),
            y=_number(_field(data, "y")),
        )

    @property
    def is_set(self) -> bool:
        return self.w > 0 and self.h > 0


@dataclass(frozen=True)
class Panel:
    id: int
    type: str
    title: str = ""
    grid_pos: GridPos = field(default_factory=GridPos)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Panel:
        return cls(
            id=int(_field(data, "id") or 0),
            type=str(_field(data, "type") or ""),
            title=sanitize(str(_field(data, "title") or "")),
            grid_pos=GridPos.from_dict(_field(data, "gridPos")),
        )

    def is_(self, panel_type: PanelType) -> bool:
        return self.type == panel_type

    @property
    def is_single_stat(self) -> bool:
        return self.is_(PanelType.SINGLESTAT)

    def render_size(self, grid_layout: bool = False) -> PanelSize:
        """Pixel size to request from the Grafana renderer.

        With ``grid_layout`` the size follows the panel's grid position; panels
        without one (v4 dashboards) keep the per-type default.
        """
        if grid_layout and self.grid_pos.is_set:
            return PanelSize(
                width=round(self.grid_pos.w * GRID_UNIT_PX),
                height=round(self.grid_pos.h * GRID_UNIT_PX),
            )
        return _DEFAULT_SIZES.get(self.type, _DEFAULT_SIZE)


@dataclass(frozen=True)
class Row:
    title: str
    panel_indices: tuple[int, ...] = ()


def variable_values(variables: Mapping[str, str | Sequence[str]]) -> str:
    """Join the values (not the names) of the dashboard variables."""
    values: list[str] = []
    for value in variables.values():
        if isinstance(value, str):
            values.append(value)
        else:
            values.append(", ".join(value))
    return sanitize(", ".join(values))


@dataclass(frozen=True)
class Dashboard:
    title: str
    panels: tuple[Panel, ...] = ()
    rows: tuple[Row, ...] = ()
    variable_values: str = ""
    description: str = ""

    def row_panels(self, row: Row) -> tuple[Panel, ...]:
        return tuple(self.panels[i] for i in row.panel_indices)

    def sections(self) -> list[tuple[str, tuple[Panel, ...]]]:
        """Panels grouped the way they appear on the dashboard.

        Row-less dashboards yield one untitled section holding every panel.
        """
        if not self.rows:
            return [("", self.panels)]
        return [(row.title, self.row_panels(row)) for row in self.rows]

    @classmethod
    def from_json(
        cls,
        raw: bytes | str,
        variables: Mapping[str, str | Sequence[str]] | None = None,
        schema: SchemaVersion = SchemaVersion.V5,
    ) -> Dashboard:
        """Build a dashboard from the body of Grafana's dashboard API."""
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise DashboardFetchFailed(f"dashboard JSON could not be decoded: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise DashboardFetchFailed("dashboard JSON is not an object")

        data = _field(payload, "dashboard", {}) or {}
        title = sanitize(str(_field(data, "title") or ""))
        description = sanitize(str(_field(data, "description") or ""))
        values = variable_values(variables or {})

        try:
            if schema == SchemaVersion.V4:
                panels, rows = _from_rows(_field(data, "rows") or [])
            else:
                panels, rows = _from_panel_list(_field(data, "panels") or []), ()
        except (TypeError, ValueError) as exc:
            raise DashboardFetchFailed(f"dashboard JSON has an invalid panel: {exc}") from exc

        return cls(
            title=title,
            panels=panels,
            rows=rows,
            variable_values=values,
            description=description,
        )


def _content_panels(raw_panels: Iterable[Any]) -> list[Panel]:
    panels = [Panel.from_dict(p) for p in raw_panels if isinstance(p, Mapping)]
    return [p for p in panels if not p.is_(PanelType.ROW)]


def _from_panel_list(raw_panels: Iterable[Any]) -> tuple[Panel, ...]:
    return tuple(_content_panels(raw_panels))


def _from_rows(raw_rows: Iterable[Any]) -> tuple[tuple[Panel, ...], tuple[Row, ...]]:
    panels: list[Panel] = []
    rows: list[Row] = []
    for raw_row in raw_rows:
        row_panels = _content_panels(_field(raw_row, "panels") or [])
        start = len(panels)
        panels.extend(row_panels)
        rows.append(
            Row(
                title=sanitize(str(_field(raw_row, "title") or "")),
                panel_indices=tuple(range(start, len(panels))),
            )
        )
    return tuple(panels), tuple(rows)
