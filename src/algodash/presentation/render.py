"""Turn view state and snapshots into structured, output-agnostic records.

Nothing here formats a value itself; every number and date goes through
:mod:`algodash.presentation.formatting`. Rendering the same input twice yields
equal records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

import pandas as pd

from ..data.models import (
    AccountSnapshot,
    EquityPoint,
    IndicatorKind,
    MetricsSnapshot,
    PositionRow,
    ScannerRow,
    SignalRow,
    TradeRow,
)
from . import formatting as fmt
from .view_state import FILTERED, NO_DATA, ViewStateStore

R = TypeVar("R")

EMPTY_MESSAGES = {
    NO_DATA: "No data yet",
    FILTERED: "No rows match the current filters",
}


@dataclass(frozen=True, slots=True)
class Cell:
    text: str
    style: str = ""
    colspan: int = 1


@dataclass(frozen=True, slots=True)
class RenderedRow:
    cells: tuple[Cell, ...]
    key: str | None = None
    placeholder: bool = False


@dataclass(frozen=True, slots=True)
class HeaderCell:
    key: str
    title: str
    indicator: str = ""

    @property
    def label(self) -> str:
        return f"{self.title} {self.indicator}" if self.indicator else self.title


@dataclass(frozen=True, slots=True)
class Column(Generic[R]):
    """One table column: its sort key, header title and cell builder."""

    key: str
    title: str
    cell: Callable[[R], Cell]


@dataclass(frozen=True)
class RenderedTable:
    name: str
    headers: tuple[HeaderCell, ...]
    rows: tuple[RenderedRow, ...]
    empty_reason: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.empty_reason is not None

    def to_frame(self) -> pd.DataFrame:
        """Cell text as a DataFrame; the placeholder row fills the first column."""

        columns = [header.label for header in self.headers]
        records: list[list[str]] = []
        for row in self.rows:
            texts: list[str] = []
            for cell in row.cells:
                texts.append(cell.text)
                texts.extend([""] * (cell.colspan - 1))
            records.append(texts)
        return pd.DataFrame(records, columns=columns)

    def as_text(self) -> str:
        return self.to_frame().to_string(index=False)


@dataclass(frozen=True, slots=True)
class Card:
    key: str
    label: str
    text: str
    style: str = fmt.NEUTRAL


@dataclass(frozen=True, slots=True)
class ChartSeries:
    label: str
    values: tuple[float, ...]


@dataclass(frozen=True)
class LineChart:
    labels: tuple[str, ...]
    series: tuple[ChartSeries, ...]

    def to_frame(self) -> pd.DataFrame:
        data = {series.label: list(series.values) for series in self.series}
        return pd.DataFrame(data, index=pd.Index(list(self.labels), name="date"))


class ChartSurface:
    """Exclusive owner of one chart slot; a redraw releases the previous chart first."""

    def __init__(self, name: str = "equity") -> None:
        self.name = name
        self._chart: LineChart | None = None
        self.releases = 0

    @property
    def chart(self) -> LineChart | None:
        return self._chart

    def release(self) -> None:
        if self._chart is not None:
            self._chart = None
            self.releases += 1

    def draw(self, points: Sequence[EquityPoint], label: str = "Equity") -> LineChart:
        self.release()
        chart = LineChart(
            labels=tuple(fmt.fmt_date(point.date) for point in points),
            series=(ChartSeries(label=label, values=tuple(float(point.value) for point in points)),),
        )
        self._chart = chart
        return chart


def _text(value: Any) -> Cell:
    return Cell(fmt.fmt_text(value))


def _usd(value: Any) -> Cell:
    return Cell(fmt.fmt_usd(value))


def _pnl(value: Any) -> Cell:
    return Cell(fmt.fmt_signed_usd(value), fmt.sign_class(value))


def _pct_change(value: Any) -> Cell:
    return Cell(fmt.fmt_signed_pct(value), fmt.sign_class(value))


def _indicator(kind: IndicatorKind, label: Any) -> Cell:
    return Cell(fmt.indicator_text(label), fmt.indicator_tag(kind, label))


def _badge(value: Any) -> Cell:
    return Cell(fmt.fmt_text(value), fmt.verdict_badge(value))


def _scanner_symbol(row: ScannerRow) -> Cell:
    return Cell(row.symbol, "held" if row.held else "")


def _rsi(row: ScannerRow) -> Cell:
    return Cell(fmt.fmt_number(row.rsi_14, 1), fmt.rsi_bucket(row.rsi_14))


POSITION_COLUMNS: tuple[Column[PositionRow], ...] = (
    Column("symbol", "Symbol", lambda row: Cell(row.symbol)),
    Column("quantity", "Qty", lambda row: Cell(fmt.fmt_quantity(row.quantity))),
    Column("avg_cost", "Avg Cost", lambda row: _usd(row.avg_cost)),
    Column("current_price", "Price", lambda row: _usd(row.current_price)),
    Column("market_value", "Market Value", lambda row: _usd(row.market_value)),
    Column("unrealized_pnl", "Unrealized P&L",
           lambda row: _pnl(row.unrealized_pnl)),
    Column("pnl_pct", "P&L %", lambda row: _pct_change(row.pnl_pct)),
    Column("realized_pnl", "Realized P&L", lambda row: _pnl(row.realized_pnl)),
    Column("strategy", "Strategy", lambda row: _text(row.strategy)),
    Column("entry_date", "Entry", lambda row: Cell(fmt.fmt_date(row.entry_date))),
)

SCANNER_COLUMNS: tuple[Column[ScannerRow], ...] = (
    Column("symbol", "Symbol", _scanner_symbol),
    Column("close", "Close", lambda row: _usd(row.close)),
    Column("sma_200", "SMA 200", lambda row: _usd(row.sma_200)),
    Column("sma_distance", "vs SMA", lambda row: _pct_change(row.sma_distance)),
    Column("rsi_14", "RSI", _rsi),
    Column("volatility", "Volatility",
           lambda row: _indicator(IndicatorKind.VOLATILITY, row.volatility)),
    Column("momentum", "Momentum",
           lambda row: _indicator(IndicatorKind.MOMENTUM, row.momentum)),
    Column("bollinger", "Bollinger",
           lambda row: _indicator(IndicatorKind.BOLLINGER, row.bollinger)),
    Column("regime", "Regime",
           lambda row: _indicator(IndicatorKind.REGIME, row.regime)),
    Column("signal", "Signal", lambda row: _badge(row.signal)),
    Column("rejection_reason", "Note", lambda row: _text(row.rejection_reason)),
)

SIGNAL_COLUMNS: tuple[Column[SignalRow], ...] = (
    Column("generated_at", "Generated",
           lambda row: Cell(fmt.fmt_timestamp(row.generated_at))),
    Column("symbol", "Symbol", lambda row: Cell(row.symbol)),
    Column("signal_type", "Type", lambda row: _badge(row.signal_type)),
    Column("quantity", "Qty", lambda row: Cell(fmt.fmt_quantity(row.quantity))),
    Column("target_price", "Target", lambda row: _usd(row.target_price)),
    Column("strategy", "Strategy", lambda row: _text(row.strategy)),
    Column("reason", "Reason", lambda row: _text(row.reason)),
)

TRADE_COLUMNS: tuple[Column[TradeRow], ...] = (
    Column("date", "Date", lambda row: Cell(fmt.fmt_date(row.date))),
    Column("symbol", "Symbol", lambda row: Cell(row.symbol)),
    Column("action", "Action", lambda row: _badge(row.action)),
    Column("quantity", "Qty", lambda row: Cell(fmt.fmt_quantity(row.quantity))),
    Column("price", "Price", lambda row: _usd(row.price)),
    Column("pnl", "P&L", lambda row: _pnl(row.pnl)),
    Column("strategy", "Strategy", lambda row: _text(row.strategy)),
)

TABLE_COLUMNS: dict[str, tuple[Column[Any], ...]] = {
    "positions": POSITION_COLUMNS,
    "scanner": SCANNER_COLUMNS,
    "signals": SIGNAL_COLUMNS,
    "trades": TRADE_COLUMNS,
}


def render_table(store: ViewStateStore[R], columns: Sequence[Column[R]]) -> RenderedTable:
    """Render the store's derived view, or a single spanning placeholder row."""

    headers = tuple(
        HeaderCell(key=column.key, title=column.title,
                   indicator=store.sort_indicator(column.key))
        for column in columns
    )
    derived = store.derive()
    if not derived:
        reason = store.empty_reason() or NO_DATA
        placeholder = RenderedRow(
            cells=(Cell(EMPTY_MESSAGES[reason], "empty", colspan=len(columns)),),
            placeholder=True,
        )
        return RenderedTable(store.schema.name, headers, (placeholder,), reason)

    rows = tuple(
        RenderedRow(
            cells=tuple(column.cell(row) for column in columns),
            key=getattr(row, "symbol", None),
        )
        for row in derived
    )
    return RenderedTable(store.schema.name, headers, rows)


def render_account_cards(snapshot: AccountSnapshot | None) -> tuple[Card, ...]:
    if snapshot is None:
        snapshot = AccountSnapshot()
    updated = fmt.fmt_date(snapshot.as_of)
    return (
        Card("net_liquidation", "Net Liquidation",
             fmt.fmt_usd(snapshot.net_liquidation)),
        Card("free_cash", "Free Cash", fmt.fmt_usd(snapshot.free_cash)),
        Card("position_value", "Positions Value",
             fmt.fmt_usd(snapshot.position_value)),
        Card("unrealized_pnl", "Unrealized P&L", fmt.fmt_signed_usd(snapshot.unrealized_pnl),
             fmt.sign_class(snapshot.unrealized_pnl)),
        Card("realized_pnl", "Realized P&L", fmt.fmt_signed_usd(snapshot.realized_pnl),
             fmt.sign_class(snapshot.realized_pnl)),
        Card("position_count", "Open Positions",
             fmt.fmt_quantity(snapshot.position_count)),
        Card("as_of", "Updated",
             updated if updated == fmt.PLACEHOLDER else f"Updated: {updated}"),
    )


def render_metrics_cards(snapshot: MetricsSnapshot | None) -> tuple[Card, ...]:
    if snapshot is None:
        snapshot = MetricsSnapshot()
    drawdown = snapshot.max_drawdown
    return (
        Card("sharpe_ratio", "Sharpe", fmt.fmt_number(snapshot.sharpe_ratio)),
        Card("max_drawdown", "Max Drawdown", fmt.fmt_pct(drawdown),
             fmt.NEGATIVE if drawdown else fmt.NEUTRAL),
        Card("total_return", "Total Return", fmt.fmt_signed_pct(snapshot.total_return),
             fmt.sign_class(snapshot.total_return)),
        Card("win_rate", "Win Rate", fmt.fmt_percent_points(snapshot.win_rate)),
    )


def render_count_card(key: str, label: str, count: int | None) -> Card:
    return Card(key, label, fmt.fmt_quantity(count))


__all__ = [
    "Card",
    "Cell",
    "ChartSeries",
    "ChartSurface",
    "Column",
    "EMPTY_MESSAGES",
    "HeaderCell",
    "LineChart",
    "POSITION_COLUMNS",
    "RenderedRow",
    "RenderedTable",
    "SCANNER_COLUMNS",
    "SIGNAL_COLUMNS",
    "TABLE_COLUMNS",
    "TRADE_COLUMNS",
    "render_account_cards",
    "render_count_card",
    "render_metrics_cards",
    "render_table",
]
