"""Data models for the dashboard feeds.

Every model is a frozen snapshot of what the backend returned on one poll.
Scanner indicator labels are validated against fixed vocabularies here, at
the boundary, so that renderers never have to guess at spelling or casing.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Iterable, Mapping

import pandas as pd
from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator


def _to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    stamp = pd.to_datetime(value, errors="coerce")
    if pd.isna(stamp):
        raise ValueError(f"Unrecognized date value: {value!r}")
    return stamp.date()


def _to_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    stamp = pd.to_datetime(value, errors="coerce")
    if pd.isna(stamp):
        raise ValueError(f"Unrecognized timestamp value: {value!r}")
    return stamp.to_pydatetime()


def _upper(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _flag(value: Any) -> Any:
    # A null flag means "not set".
    return False if value is None else value


DateValue = Annotated[date | None, BeforeValidator(_to_date)]
TimestampValue = Annotated[datetime | None, BeforeValidator(_to_datetime)]


class TradeAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class Verdict(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Volatility(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class Momentum(str, Enum):
    STRONG_UP = "Strong Up"
    UP = "Up"
    FLAT = "Flat"
    DOWN = "Down"
    STRONG_DOWN = "Strong Down"


class BandPosition(str, Enum):
    ABOVE_UPPER = "Above Upper"
    NEAR_UPPER = "Near Upper"
    INSIDE = "Inside"
    NEAR_LOWER = "Near Lower"
    BELOW_LOWER = "Below Lower"


class MarketRegime(str, Enum):
    BULL = "BULL"
    BEAR = "BEAR"
    SIDEWAYS = "SIDEWAYS"


class IndicatorKind(str, Enum):
    VOLATILITY = "volatility"
    MOMENTUM = "momentum"
    BOLLINGER = "bollinger"
    REGIME = "regime"


INDICATOR_VOCABULARIES: dict[IndicatorKind, type[Enum]] = {
    IndicatorKind.VOLATILITY: Volatility,
    IndicatorKind.MOMENTUM: Momentum,
    IndicatorKind.BOLLINGER: BandPosition,
    IndicatorKind.REGIME: MarketRegime,
}

# Field name -> accepted payload keys.
_SCANNER_LABEL_KEYS: dict[str, tuple[str, ...]] = {
    "volatility": ("volatility", "volatility_regime"),
    "momentum": ("momentum", "momentum_regime"),
    "bollinger": ("bollinger", "bb_position", "band"),
    "regime": ("regime", "market_regime"),
    "signal": ("signal", "verdict"),
}

_LABEL_VOCABULARIES: dict[str, type[Enum]] = {
    "volatility": Volatility,
    "momentum": Momentum,
    "bollinger": BandPosition,
    "regime": MarketRegime,
    "signal": Verdict,
}


def match_label(vocabulary: type[Enum], raw: Any) -> Enum | None:
    """Return the vocabulary member matching ``raw`` ignoring case, else ``None``."""

    if isinstance(raw, vocabulary):
        return raw
    if not isinstance(raw, str):
        return None
    wanted = " ".join(raw.split()).casefold()
    if not wanted:
        return None
    for member in vocabulary:
        if member.value.casefold() == wanted:
            return member
    return None


class _Snapshot(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class AccountSnapshot(_Snapshot):
    """Current account balances."""

    net_liquidation: float | None = None
    free_cash: float | None = Field(
        None, validation_alias=AliasChoices("free_cash", "cash"))
    position_value: float | None = Field(
        None,
        validation_alias=AliasChoices(
            "position_value", "total_position_value", "positions_value"),
    )
    unrealized_pnl: float | None = None
    realized_pnl: float | None = None
    position_count: int | None = Field(
        None, validation_alias=AliasChoices("position_count", "num_positions"))
    as_of: DateValue = Field(
        None, validation_alias=AliasChoices("as_of", "date"))


class MetricsSnapshot(_Snapshot):
    """Performance metrics; drawdown and return are fractions, win rate is a percentage."""

    sharpe_ratio: float | None = None
    max_drawdown: float | None = None
    total_return: float | None = None
    win_rate: float | None = None


class EquityPoint(_Snapshot):
    date: DateValue
    value: float


class ScannerRow(_Snapshot):
    """One instrument from the latest market scan."""

    symbol: str
    close: float | None = None
    sma_200: float | None = Field(
        None, validation_alias=AliasChoices("sma_200", "sma"))
    rsi_14: float | None = Field(
        None, validation_alias=AliasChoices("rsi_14", "rsi"))
    volatility: Volatility | None = Field(
        None, validation_alias=AliasChoices(*_SCANNER_LABEL_KEYS["volatility"]))
    momentum: Momentum | None = Field(
        None, validation_alias=AliasChoices(*_SCANNER_LABEL_KEYS["momentum"]))
    bollinger: BandPosition | None = Field(
        None, validation_alias=AliasChoices(*_SCANNER_LABEL_KEYS["bollinger"]))
    regime: MarketRegime | None = Field(
        None, validation_alias=AliasChoices(*_SCANNER_LABEL_KEYS["regime"]))
    held: Annotated[bool, BeforeValidator(_flag)] = Field(
        False, validation_alias=AliasChoices("held", "is_held"))
    signal: Verdict | None = Field(
        None, validation_alias=AliasChoices(*_SCANNER_LABEL_KEYS["signal"]))
    rejection_reason: str | None = None
    scan_date: DateValue = None
    unrecognized_labels: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flag_unknown_labels(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        values = dict(data)
        flagged: dict[str, str] = dict(values.get("unrecognized_labels") or {})
        for field_name, keys in _SCANNER_LABEL_KEYS.items():
            vocabulary = _LABEL_VOCABULARIES[field_name]
            for key in keys:
                if key not in values:
                    continue
                raw = values[key]
                member = match_label(vocabulary, raw)
                if member is None and raw not in (None, ""):
                    flagged[field_name] = str(raw)
                values[key] = member
        values["unrecognized_labels"] = flagged
        return values

    @property
    def sma_distance(self) -> float | None:
        """Close relative to the moving average, as a fraction."""

        if self.close is None or not self.sma_200:
            return None
        return self.close / self.sma_200 - 1.0


class PositionRow(_Snapshot):
    """An open position."""

    symbol: str
    quantity: float | None = Field(
        None, validation_alias=AliasChoices("quantity", "qty"))
    avg_cost: float | None = Field(
        None, validation_alias=AliasChoices("avg_cost", "average_cost", "avg_price"))
    current_price: float | None = None
    market_value: float | None = None
    unrealized_pnl: float | None = None
    realized_pnl: float | None = None
    strategy: str | None = None
    entry_date: DateValue = None

    @property
    def cost_basis(self) -> float | None:
        if self.quantity is None or self.avg_cost is None:
            return None
        return self.quantity * self.avg_cost

    @property
    def pnl_pct(self) -> float | None:
        basis = self.cost_basis
        if not basis or self.unrealized_pnl is None:
            return None
        return self.unrealized_pnl / abs(basis)


class SignalRow(_Snapshot):
    """A pending signal. Several may exist for the same symbol."""

    symbol: str
    signal_type: Annotated[TradeAction, BeforeValidator(_upper)] = Field(
        validation_alias=AliasChoices("signal_type", "type", "signal"))
    quantity: float | None = None
    target_price: float | None = Field(
        None, validation_alias=AliasChoices("target_price", "price"))
    strategy: str | None = None
    reason: str | None = None
    generated_at: TimestampValue = Field(
        None, validation_alias=AliasChoices("generated_at", "created_at", "timestamp"))


class TradeRow(_Snapshot):
    """A recent fill."""

    date: DateValue
    symbol: str
    action: Annotated[TradeAction, BeforeValidator(_upper)]
    quantity: float | None = None
    price: float | None = None
    pnl: float | None = Field(
        None, validation_alias=AliasChoices("pnl", "realized_pnl"))
    strategy: str | None = None


def equity_points_from_records(
        records: Iterable[Mapping[str, Any]], value_field: str) -> list[EquityPoint]:
    """Build an ascending equity series from raw history records.

    Records missing either the date or ``value_field`` are skipped. Ordering is
    stable, so records sharing a date keep their payload order.
    """

    points: list[EquityPoint] = []
    for record in records:
        value = record.get(value_field)
        if value is None or record.get("date") in (None, ""):
            continue
        points.append(EquityPoint(date=record["date"], value=float(value)))
    points.sort(key=lambda point: point.date)
    return points


__all__ = [
    "AccountSnapshot",
    "BandPosition",
    "EquityPoint",
    "INDICATOR_VOCABULARIES",
    "IndicatorKind",
    "MarketRegime",
    "MetricsSnapshot",
    "Momentum",
    "PositionRow",
    "ScannerRow",
    "SignalRow",
    "TradeAction",
    "TradeRow",
    "Verdict",
    "Volatility",
    "equity_points_from_records",
    "match_label",
]
