"""Sort fields and filters for each dashboard table."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable

from ..data.models import (
    MarketRegime,
    PositionRow,
    ScannerRow,
    SignalRow,
    TradeAction,
    TradeRow,
    Verdict,
    match_label,
)
from .formatting import rsi_bucket
from .view_state import Predicate, SortColumn, TableSchema, ViewStateStore

RSI_BUCKETS = ("oversold", "neutral", "overbought", "unclassified")


class PositionSort(str, Enum):
    SYMBOL = "symbol"
    QUANTITY = "quantity"
    AVG_COST = "avg_cost"
    CURRENT_PRICE = "current_price"
    MARKET_VALUE = "market_value"
    UNREALIZED_PNL = "unrealized_pnl"
    PNL_PCT = "pnl_pct"
    REALIZED_PNL = "realized_pnl"
    STRATEGY = "strategy"
    ENTRY_DATE = "entry_date"


class ScannerSort(str, Enum):
    SYMBOL = "symbol"
    CLOSE = "close"
    SMA_200 = "sma_200"
    SMA_DISTANCE = "sma_distance"
    RSI = "rsi_14"
    VOLATILITY = "volatility"
    MOMENTUM = "momentum"
    BOLLINGER = "bollinger"
    REGIME = "regime"
    HELD = "held"
    SIGNAL = "signal"
    SCAN_DATE = "scan_date"


class SignalSort(str, Enum):
    SYMBOL = "symbol"
    SIGNAL_TYPE = "signal_type"
    QUANTITY = "quantity"
    TARGET_PRICE = "target_price"
    STRATEGY = "strategy"
    GENERATED_AT = "generated_at"


class TradeSort(str, Enum):
    DATE = "date"
    SYMBOL = "symbol"
    ACTION = "action"
    QUANTITY = "quantity"
    PRICE = "price"
    PNL = "pnl"
    STRATEGY = "strategy"


def _identifier(accessor: Callable[[Any], Any]) -> SortColumn[Any]:
    return SortColumn(accessor=accessor, ascending_by_default=True)


def _magnitude(accessor: Callable[[Any], Any]) -> SortColumn[Any]:
    return SortColumn(accessor=accessor, ascending_by_default=False)


def symbol_contains(value: Any) -> Predicate:
    needle = str(value).strip().upper()
    return lambda row: needle in row.symbol.upper()


def _text_equals(accessor: Callable[[Any], Any]) -> Callable[[Any], Predicate]:
    def factory(value: Any) -> Predicate:
        wanted = str(value).strip().casefold()
        return lambda row: (accessor(row) or "").strip().casefold() == wanted

    return factory


def _label_equals(vocabulary: type[Enum], accessor: Callable[[Any], Any]) -> Callable[[Any], Predicate]:
    def factory(value: Any) -> Predicate:
        member = match_label(vocabulary, value)
        if member is None:
            raise ValueError(
                f"{value!r} is not a valid {vocabulary.__name__} filter value")
        return lambda row: accessor(row) == member

    return factory


def _flag_equals(accessor: Callable[[Any], Any]) -> Callable[[Any], Predicate]:
    def factory(value: Any) -> Predicate:
        if isinstance(value, str):
            wanted = value.strip().lower() in {"1", "true", "yes", "held"}
        else:
            wanted = bool(value)
        return lambda row: bool(accessor(row)) is wanted

    return factory


def pnl_direction(value: Any) -> Predicate:
    direction = str(value).strip().lower()
    if direction == "winners":
        return lambda row: (row.unrealized_pnl or 0) > 0
    if direction == "losers":
        return lambda row: (row.unrealized_pnl or 0) < 0
    raise ValueError(f"{value!r} is not a valid P&L filter (winners/losers)")


def rsi_bucket_equals(value: Any) -> Predicate:
    bucket = str(value).strip().lower()
    if bucket not in RSI_BUCKETS:
        raise ValueError(f"{value!r} is not a valid RSI bucket")
    return lambda row: rsi_bucket(row.rsi_14) == bucket


POSITIONS_TABLE: TableSchema[PositionRow] = TableSchema(
    name="positions",
    sort_fields=PositionSort,
    sort_columns={
        PositionSort.SYMBOL: _identifier(lambda row: row.symbol),
        PositionSort.QUANTITY: _magnitude(lambda row: row.quantity),
        PositionSort.AVG_COST: _magnitude(lambda row: row.avg_cost),
        PositionSort.CURRENT_PRICE: _magnitude(lambda row: row.current_price),
        PositionSort.MARKET_VALUE: _magnitude(lambda row: row.market_value),
        PositionSort.UNREALIZED_PNL: _magnitude(lambda row: row.unrealized_pnl),
        PositionSort.PNL_PCT: _magnitude(lambda row: row.pnl_pct),
        PositionSort.REALIZED_PNL: _magnitude(lambda row: row.realized_pnl),
        PositionSort.STRATEGY: _identifier(lambda row: row.strategy),
        PositionSort.ENTRY_DATE: _magnitude(lambda row: row.entry_date),
    },
    default_sort=PositionSort.MARKET_VALUE,
    filters={
        "symbol": symbol_contains,
        "strategy": _text_equals(lambda row: row.strategy),
        "pnl": pnl_direction,
    },
)

SCANNER_TABLE: TableSchema[ScannerRow] = TableSchema(
    name="scanner",
    sort_fields=ScannerSort,
    sort_columns={
        ScannerSort.SYMBOL: _identifier(lambda row: row.symbol),
        ScannerSort.CLOSE: _magnitude(lambda row: row.close),
        ScannerSort.SMA_200: _magnitude(lambda row: row.sma_200),
        ScannerSort.SMA_DISTANCE: _magnitude(lambda row: row.sma_distance),
        ScannerSort.RSI: _magnitude(lambda row: row.rsi_14),
        ScannerSort.VOLATILITY: _identifier(lambda row: row.volatility),
        ScannerSort.MOMENTUM: _identifier(lambda row: row.momentum),
        ScannerSort.BOLLINGER: _identifier(lambda row: row.bollinger),
        ScannerSort.REGIME: _identifier(lambda row: row.regime),
        ScannerSort.HELD: _magnitude(lambda row: row.held),
        ScannerSort.SIGNAL: _identifier(lambda row: row.signal),
        ScannerSort.SCAN_DATE: _magnitude(lambda row: row.scan_date),
    },
    default_sort=ScannerSort.SYMBOL,
    filters={
        "symbol": symbol_contains,
        "signal": _label_equals(Verdict, lambda row: row.signal),
        "regime": _label_equals(MarketRegime, lambda row: row.regime),
        "held": _flag_equals(lambda row: row.held),
        "rsi": rsi_bucket_equals,
    },
)

SIGNALS_TABLE: TableSchema[SignalRow] = TableSchema(
    name="signals",
    sort_fields=SignalSort,
    sort_columns={
        SignalSort.SYMBOL: _identifier(lambda row: row.symbol),
        SignalSort.SIGNAL_TYPE: _identifier(lambda row: row.signal_type),
        SignalSort.QUANTITY: _magnitude(lambda row: row.quantity),
        SignalSort.TARGET_PRICE: _magnitude(lambda row: row.target_price),
        SignalSort.STRATEGY: _identifier(lambda row: row.strategy),
        SignalSort.GENERATED_AT: _magnitude(lambda row: row.generated_at),
    },
    default_sort=SignalSort.GENERATED_AT,
    filters={
        "symbol": symbol_contains,
        "signal_type": _label_equals(TradeAction, lambda row: row.signal_type),
        "strategy": _text_equals(lambda row: row.strategy),
    },
)

TRADES_TABLE: TableSchema[TradeRow] = TableSchema(
    name="trades",
    sort_fields=TradeSort,
    sort_columns={
        TradeSort.DATE: _magnitude(lambda row: row.date),
        TradeSort.SYMBOL: _identifier(lambda row: row.symbol),
        TradeSort.ACTION: _identifier(lambda row: row.action),
        TradeSort.QUANTITY: _magnitude(lambda row: row.quantity),
        TradeSort.PRICE: _magnitude(lambda row: row.price),
        TradeSort.PNL: _magnitude(lambda row: row.pnl),
        TradeSort.STRATEGY: _identifier(lambda row: row.strategy),
    },
    default_sort=TradeSort.DATE,
    filters={
        "symbol": symbol_contains,
        "action": _label_equals(TradeAction, lambda row: row.action),
        "strategy": _text_equals(lambda row: row.strategy),
    },
)

TABLE_SCHEMAS: dict[str, TableSchema[Any]] = {
    schema.name: schema
    for schema in (POSITIONS_TABLE, SCANNER_TABLE, SIGNALS_TABLE, TRADES_TABLE)
}


def build_stores() -> dict[str, ViewStateStore[Any]]:
    """Fresh, empty stores for every table, keyed by table name."""

    return {name: ViewStateStore(schema) for name, schema in TABLE_SCHEMAS.items()}


__all__ = [
    "POSITIONS_TABLE",
    "PositionSort",
    "SCANNER_TABLE",
    "SIGNALS_TABLE",
    "ScannerSort",
    "SignalSort",
    "TABLE_SCHEMAS",
    "TRADES_TABLE",
    "TradeSort",
    "build_stores",
    "pnl_direction",
    "rsi_bucket_equals",
    "symbol_contains",
]
