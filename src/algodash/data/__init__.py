"""Data layer exports: feed client and snapshot models."""

from .feeds import Feed, FeedClient, FeedEnvelope, FeedResult, FetchError, FetchErrorKind
from .models import (
    AccountSnapshot,
    EquityPoint,
    MetricsSnapshot,
    PositionRow,
    ScannerRow,
    SignalRow,
    TradeRow,
)

__all__ = [
    "AccountSnapshot",
    "EquityPoint",
    "Feed",
    "FeedClient",
    "FeedEnvelope",
    "FeedResult",
    "FetchError",
    "FetchErrorKind",
    "MetricsSnapshot",
    "PositionRow",
    "ScannerRow",
    "SignalRow",
    "TradeRow",
]
