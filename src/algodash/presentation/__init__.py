"""Formatting, per-table view state and rendering."""

from .render import ChartSurface, RenderedTable, render_table
from .tables import TABLE_SCHEMAS, build_stores
from .view_state import SortColumn, TableSchema, ViewStateStore

__all__ = [
    "ChartSurface",
    "RenderedTable",
    "SortColumn",
    "TABLE_SCHEMAS",
    "TableSchema",
    "ViewStateStore",
    "build_stores",
    "render_table",
]
