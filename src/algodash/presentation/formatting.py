"""Display formatting and style classification for dashboard values.

Every function here is total: ``None`` (or anything that cannot be read as a
number or date) maps to :data:`PLACEHOLDER` or a neutral style instead of
raising.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from math import isfinite
from typing import Any

import pandas as pd

from ..data.models import INDICATOR_VOCABULARIES, IndicatorKind, match_label

PLACEHOLDER = "—"

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"

RSI_OVERSOLD = 40.0
RSI_OVERBOUGHT = 70.0

DEFAULT_TAG = "muted"

INDICATOR_TAGS: dict[IndicatorKind, dict[str, str]] = {
    IndicatorKind.VOLATILITY: {
        "LOW": "good",
        "NORMAL": "info",
        "HIGH": "warn",
        "EXTREME": "bad",
    },
    IndicatorKind.MOMENTUM: {
        "Strong Up": "good",
        "Up": "good",
        "Flat": "info",
        "Down": "bad",
        "Strong Down": "bad",
    },
    IndicatorKind.BOLLINGER: {
        "Above Upper": "bad",
        "Near Upper": "warn",
        "Inside": "info",
        "Near Lower": "warn",
        "Below Lower": "good",
    },
    IndicatorKind.REGIME: {
        "BULL": "good",
        "SIDEWAYS": "info",
        "BEAR": "bad",
    },
}

VERDICT_BADGES = {
    "BUY": "badge-buy",
    "SELL": "badge-sell",
    "HOLD": "badge-hold",
}


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if isfinite(number) else None


def fmt_number(value: Any, digits: int = 2) -> str:
    number = _as_float(value)
    if number is None:
        return PLACEHOLDER
    text = f"{number:,.{digits}f}"
    # Avoid "-0.00" for tiny negatives.
    if text.lstrip("-").strip("0.,") == "":
        text = text.lstrip("-")
    return text


def fmt_usd(value: Any) -> str:
    text = fmt_number(value)
    return text if text == PLACEHOLDER else f"${text}"


def fmt_pct(value: Any, digits: int = 2) -> str:
    """Format a fraction as a percentage: ``0.1234`` -> ``"12.34%"``."""

    number = _as_float(value)
    if number is None:
        return PLACEHOLDER
    return f"{fmt_number(number * 100, digits)}%"


def fmt_percent_points(value: Any, digits: int = 2) -> str:
    """Format a value that is already expressed in percent."""

    text = fmt_number(value, digits)
    return text if text == PLACEHOLDER else f"{text}%"


def fmt_quantity(value: Any) -> str:
    number = _as_float(value)
    if number is None:
        return PLACEHOLDER
    if number.is_integer():
        return fmt_number(number, 0)
    return fmt_number(number, 4).rstrip("0").rstrip(".")


def sign_class(value: Any) -> str:
    number = _as_float(value)
    if number is None or number == 0:
        return NEUTRAL
    return POSITIVE if number > 0 else NEGATIVE


def signed_prefix(value: Any) -> str:
    number = _as_float(value)
    return "+" if number is not None and number > 0 else ""


def fmt_signed_usd(value: Any) -> str:
    text = fmt_usd(value)
    return text if text == PLACEHOLDER else f"{signed_prefix(value)}{text}"


def fmt_signed_pct(value: Any, digits: int = 2) -> str:
    text = fmt_pct(value, digits)
    return text if text == PLACEHOLDER else f"{signed_prefix(value)}{text}"


def pct_change(current: Any, reference: Any) -> float | None:
    """Fractional change from ``reference`` to ``current``."""

    now = _as_float(current)
    then = _as_float(reference)
    if now is None or not then:
        return None
    return now / then - 1.0


def fmt_date(value: Any) -> str:
    """Short US date (``M/D/YYYY``)."""

    if value is None or value == "":
        return PLACEHOLDER
    if isinstance(value, (date, datetime)):
        stamp = pd.Timestamp(value)
    else:
        stamp = pd.to_datetime(value, errors="coerce")
    if pd.isna(stamp):
        return PLACEHOLDER
    return f"{stamp.month}/{stamp.day}/{stamp.year}"


def fmt_timestamp(value: Any) -> str:
    if value is None or value == "":
        return PLACEHOLDER
    stamp = pd.to_datetime(value, errors="coerce")
    if pd.isna(stamp):
        return PLACEHOLDER
    return f"{fmt_date(stamp)} {stamp:%H:%M}"


def rsi_bucket(value: Any) -> str:
    number = _as_float(value)
    if number is None:
        return "unclassified"
    if number < RSI_OVERSOLD:
        return "oversold"
    if number > RSI_OVERBOUGHT:
        return "overbought"
    return "neutral"


def indicator_tag(kind: IndicatorKind | str, label: Any) -> str:
    """Style tag for a categorical scanner indicator."""

    kind = IndicatorKind(kind)
    member = match_label(INDICATOR_VOCABULARIES[kind], label)
    if member is None:
        return DEFAULT_TAG
    return INDICATOR_TAGS[kind].get(member.value, DEFAULT_TAG)


def indicator_text(label: Any) -> str:
    if isinstance(label, Enum):
        return str(label.value)
    if isinstance(label, str) and label.strip():
        return label.strip()
    return PLACEHOLDER


def verdict_badge(value: Any) -> str:
    key = value.value if isinstance(value, Enum) else value
    if not isinstance(key, str):
        return "badge-muted"
    return VERDICT_BADGES.get(key.strip().upper(), "badge-muted")


def fmt_text(value: Any) -> str:
    if value is None:
        return PLACEHOLDER
    if isinstance(value, Enum):
        value = value.value
    text = str(value).strip()
    return text or PLACEHOLDER


__all__ = [
    "DEFAULT_TAG",
    "NEGATIVE",
    "NEUTRAL",
    "PLACEHOLDER",
    "POSITIVE",
    "fmt_date",
    "fmt_number",
    "fmt_pct",
    "fmt_percent_points",
    "fmt_quantity",
    "fmt_signed_pct",
    "fmt_signed_usd",
    "fmt_text",
    "fmt_timestamp",
    "fmt_usd",
    "indicator_tag",
    "indicator_text",
    "pct_change",
    "rsi_bucket",
    "sign_class",
    "signed_prefix",
    "verdict_badge",
]
