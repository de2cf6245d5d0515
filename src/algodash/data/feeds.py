"""HTTP client for the read-only dashboard feeds."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, Optional, TypeVar

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from ..config import DashboardSettings
from .models import DateValue, EquityPoint, ScannerRow, equity_points_from_records

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class Feed(str, Enum):
    """Backend paths, one per logical feed."""

    ACCOUNT = "/api/v1/account/current"
    ACCOUNT_HISTORY = "/api/v1/account/history"
    PORTFOLIO_HISTORY = "/api/v1/portfolio/history"
    METRICS = "/api/v1/metrics/current"
    SCANNER = "/api/v1/scanner/latest"
    POSITIONS = "/api/v1/positions/current"
    SIGNALS = "/api/v1/signals/pending"
    TRADES = "/api/v1/trades/recent"


class FetchErrorKind(str, Enum):
    TRANSPORT = "transport"
    DECODE = "decode"


@dataclass(frozen=True, slots=True)
class FetchError:
    """Why a feed produced no data."""

    path: str
    kind: FetchErrorKind
    cause: str
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.path}: {self.kind.value} error ({self.cause})"


class FeedEnvelope(BaseModel):
    """Response body shared by every feed: ``{data, count?, scan_date?}``."""

    model_config = ConfigDict(frozen=True, extra="allow")

    data: Any
    count: int | None = None
    scan_date: DateValue = None

    @property
    def records(self) -> list[Any]:
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return list(self.data)
        return [self.data]


@dataclass(frozen=True)
class FeedResult(Generic[T]):
    """Either a payload or a :class:`FetchError`, never both."""

    path: str
    payload: Optional[T] = None
    error: FetchError | None = None
    count: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(
            cls,
            path: str,
            kind: FetchErrorKind,
            cause: str,
            *,
            status_code: int | None = None,
    ) -> "FeedResult[Any]":
        error = FetchError(path=path, kind=kind, cause=cause,
                           status_code=status_code)
        logger.warning("Feed %s failed with %s error: %s",
                       path, kind.value, cause)
        return cls(path=path, error=error)


class FeedClient:
    """Issue one GET per feed and turn every outcome into a :class:`FeedResult`.

    Without an injected session each worker thread gets its own
    ``requests.Session``; an injected session is shared by every thread.
    """

    def __init__(
            self,
            settings: DashboardSettings | None = None,
            *,
            session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or DashboardSettings()
        self._shared = session
        self._local = threading.local()
        self._owned: list[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._shared is not None:
            return self._shared
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._owned.append(session)
        return session

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
        with self._lock:
            owned, self._owned = self._owned, []
        for session in owned:
            session.close()

    def default_params(self, feed: Feed) -> dict[str, Any]:
        if feed in (Feed.ACCOUNT_HISTORY, Feed.PORTFOLIO_HISTORY):
            return {"limit": self.settings.history_limit}
        if feed is Feed.TRADES:
            return {"limit": self.settings.trades_limit}
        return {}

    def fetch_feed(self, path: str, params: Optional[Mapping[str, Any]] = None) -> FeedResult[FeedEnvelope]:
        url = self.settings.api_url(path)
        try:
            response = self.session.get(
                url, params=dict(params or {}), timeout=self.settings.request_timeout)
        except requests.RequestException as exc:
            return FeedResult.failure(path, FetchErrorKind.TRANSPORT, _describe(exc))

        status = int(response.status_code)
        if not 200 <= status < 300:
            return FeedResult.failure(
                path, FetchErrorKind.TRANSPORT, f"HTTP {status}", status_code=status)

        try:
            body = response.json()
        except ValueError as exc:
            return FeedResult.failure(path, FetchErrorKind.DECODE, f"invalid JSON: {_describe(exc)}")

        if not isinstance(body, dict):
            return FeedResult.failure(
                path, FetchErrorKind.DECODE, f"expected a JSON object, got {type(body).__name__}")
        if "data" not in body:
            return FeedResult.failure(path, FetchErrorKind.DECODE, "response has no 'data' field")
        try:
            envelope = FeedEnvelope.model_validate(body)
        except ValidationError as exc:
            return FeedResult.failure(path, FetchErrorKind.DECODE, _summarize_validation(exc))
        return FeedResult(path=path, payload=envelope, count=envelope.count)

    def fetch(self, feed: Feed, **params: Any) -> FeedResult[FeedEnvelope]:
        merged = self.default_params(feed)
        merged.update(params)
        return self.fetch_feed(feed.value, merged)

    async def fetch_async(self, feed: Feed, **params: Any) -> FeedResult[FeedEnvelope]:
        """Run :meth:`fetch` off the event loop so feeds can race each other."""

        return await asyncio.to_thread(self.fetch, feed, **params)


def decode_one(result: FeedResult[FeedEnvelope], model: type[M]) -> FeedResult[M]:
    """Decode a single-object feed; ``data: null`` yields an empty payload."""

    if not result.ok or result.payload is None:
        return FeedResult(path=result.path, error=result.error)
    data = result.payload.data
    if data is None:
        return FeedResult(path=result.path, count=result.count)
    if not isinstance(data, dict):
        return FeedResult.failure(
            result.path, FetchErrorKind.DECODE, f"expected an object in 'data', got {type(data).__name__}")
    try:
        item = model.model_validate(data)
    except ValidationError as exc:
        return FeedResult.failure(result.path, FetchErrorKind.DECODE, _summarize_validation(exc))
    return FeedResult(path=result.path, payload=item, count=result.count)


def decode_rows(
        result: FeedResult[FeedEnvelope],
        model: type[M],
        *,
        extra: Optional[Mapping[str, Any]] = None,
) -> FeedResult[list[M]]:
    """Decode a row-set feed. One invalid row fails the whole snapshot."""

    if not result.ok or result.payload is None:
        return FeedResult(path=result.path, error=result.error)
    rows: list[M] = []
    for index, record in enumerate(result.payload.records):
        if not isinstance(record, dict):
            return FeedResult.failure(
                result.path, FetchErrorKind.DECODE, f"row {index} is not an object")
        if extra:
            record = {**extra, **record}
        try:
            rows.append(model.model_validate(record))
        except ValidationError as exc:
            return FeedResult.failure(
                result.path, FetchErrorKind.DECODE, f"row {index}: {_summarize_validation(exc)}")
    return FeedResult(path=result.path, payload=rows, count=result.count)


def decode_scanner(result: FeedResult[FeedEnvelope]) -> FeedResult[list[ScannerRow]]:
    """Decode scanner rows, stamping each with the envelope's scan date."""

    extra = None
    if result.ok and result.payload is not None and result.payload.scan_date is not None:
        extra = {"scan_date": result.payload.scan_date}
    decoded = decode_rows(result, ScannerRow, extra=extra)
    for row in decoded.payload or ():
        for field_name, raw in row.unrecognized_labels.items():
            logger.warning("Scanner row %s has unrecognized %s label %r",
                           row.symbol, field_name, raw)
    return decoded


def decode_equity(result: FeedResult[FeedEnvelope], value_field: str) -> FeedResult[list[EquityPoint]]:
    if not result.ok or result.payload is None:
        return FeedResult(path=result.path, error=result.error)
    records = result.payload.records
    if not all(isinstance(record, dict) for record in records):
        return FeedResult.failure(result.path, FetchErrorKind.DECODE, "history rows must be objects")
    try:
        points = equity_points_from_records(records, value_field)
    except (TypeError, ValueError) as exc:
        return FeedResult.failure(result.path, FetchErrorKind.DECODE, _describe(exc))
    return FeedResult(path=result.path, payload=points, count=len(points))


def _describe(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def _summarize_validation(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location or 'body'}: {first.get('msg', 'invalid value')}"


__all__ = [
    "Feed",
    "FeedClient",
    "FeedEnvelope",
    "FeedResult",
    "FetchError",
    "FetchErrorKind",
    "decode_equity",
    "decode_one",
    "decode_rows",
    "decode_scanner",
]
