"""Dashboard orchestration: fetch every feed, route results, re-render panels."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import DashboardSettings
from .data.feeds import (
    Feed,
    FeedClient,
    FeedEnvelope,
    FeedResult,
    FetchError,
    decode_equity,
    decode_one,
    decode_rows,
    decode_scanner,
)
from .data.models import AccountSnapshot, EquityPoint, MetricsSnapshot, PositionRow, SignalRow, TradeRow
from .presentation.render import (
    ChartSurface,
    RenderedTable,
    TABLE_COLUMNS,
    render_account_cards,
    render_count_card,
    render_metrics_cards,
    render_table,
)
from .presentation.tables import build_stores
from .presentation.view_state import ViewStateStore

logger = logging.getLogger(__name__)

# Primary source first; the fallback is consulted when it fails or has no points.
EQUITY_SOURCES: tuple[tuple[Feed, str], ...] = (
    (Feed.ACCOUNT_HISTORY, "net_liquidation"),
    (Feed.PORTFOLIO_HISTORY, "total_equity"),
)

Decoder = Callable[[FeedResult[FeedEnvelope]], FeedResult[Any]]

TABLE_FEEDS: dict[str, tuple[Feed, Decoder]] = {
    "positions": (Feed.POSITIONS, partial(decode_rows, model=PositionRow)),
    "scanner": (Feed.SCANNER, decode_scanner),
    "signals": (Feed.SIGNALS, partial(decode_rows, model=SignalRow)),
    "trades": (Feed.TRADES, partial(decode_rows, model=TradeRow)),
}

COUNT_CARDS = {
    "signals": ("signals_count", "Pending Signals"),
    "trades": ("trades_count", "Recent Trades"),
}


class Dashboard:
    """Owns the view state of every panel and keeps its rendered output current.

    All mutations happen on the event-loop thread; only the HTTP calls run in
    worker threads. Each feed is fetched, decoded and rendered independently,
    so one failing feed leaves its own panel as it was and nothing else.
    """

    def __init__(
            self,
            client: FeedClient | None = None,
            *,
            settings: DashboardSettings | None = None,
    ) -> None:
        self.settings = settings or (
            client.settings if client is not None else DashboardSettings())
        self.client = client or FeedClient(self.settings)
        self.stores: Dict[str, ViewStateStore[Any]] = build_stores()
        self.chart = ChartSurface("equity")
        self.account: AccountSnapshot | None = None
        self.metrics: MetricsSnapshot | None = None
        self.equity: tuple[EquityPoint, ...] = ()
        self.equity_source: Feed | None = None
        self.counts: Dict[str, Optional[int]] = {name: None for name in COUNT_CARDS}
        self.last_errors: Dict[Feed, FetchError] = {}
        self.panels: Dict[str, Any] = {}
        self._render_initial()

    def close(self) -> None:
        self.client.close()

    def _render_initial(self) -> None:
        self.panels["account"] = render_account_cards(None)
        self.panels["metrics"] = render_metrics_cards(None)
        self.panels["equity"] = None
        for name in self.stores:
            self._render_table(name)
        for key, label in COUNT_CARDS.values():
            self.panels[key] = render_count_card(key, label, None)

    def _render_table(self, name: str) -> RenderedTable:
        rendered = render_table(self.stores[name], TABLE_COLUMNS[name])
        self.panels[name] = rendered
        return rendered

    def _record(self, feed: Feed, result: FeedResult[Any]) -> bool:
        if result.ok:
            self.last_errors.pop(feed, None)
            return True
        self.last_errors[feed] = result.error
        return False

    def store(self, table: str) -> ViewStateStore[Any]:
        try:
            return self.stores[table]
        except KeyError:
            raise KeyError(f"Unknown table {table!r}; expected one of {sorted(self.stores)}") from None

    async def refresh(self) -> Dict[str, bool]:
        """Fetch all feeds concurrently; returns which panels were updated."""

        jobs: Dict[str, Awaitable[bool]] = {
            "account": self._load_account(),
            "metrics": self._load_metrics(),
            "equity": self._load_equity(),
        }
        for name in TABLE_FEEDS:
            jobs[name] = self._load_table(name)

        results = await asyncio.gather(*jobs.values(), return_exceptions=True)
        outcome: Dict[str, bool] = {}
        crashed: list[BaseException] = []
        for name, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error("Panel %s failed to refresh", name, exc_info=result)
                crashed.append(result)
                outcome[name] = False
            else:
                outcome[name] = bool(result)
        logger.info("Dashboard refresh: %d/%d panels updated",
                    sum(outcome.values()), len(outcome))
        if crashed:
            raise crashed[0]
        return outcome

    def refresh_sync(self) -> Dict[str, bool]:
        return asyncio.run(self.refresh())

    async def poll(
            self,
            *,
            interval: float | None = None,
            iterations: int | None = None,
            on_refresh: Callable[["Dashboard"], None] | None = None,
    ) -> None:
        """Refresh every ``interval`` seconds, ``iterations`` times or forever."""

        delay = self.settings.refresh_interval if interval is None else interval
        completed = 0
        while iterations is None or completed < iterations:
            await self.refresh()
            completed += 1
            if on_refresh is not None:
                on_refresh(self)
            if iterations is not None and completed >= iterations:
                break
            await asyncio.sleep(delay)

    async def _load_account(self) -> bool:
        result = decode_one(await self.client.fetch_async(Feed.ACCOUNT), AccountSnapshot)
        if not self._record(Feed.ACCOUNT, result):
            return False
        self.account = result.payload
        self.panels["account"] = render_account_cards(self.account)
        return True

    async def _load_metrics(self) -> bool:
        result = decode_one(await self.client.fetch_async(Feed.METRICS), MetricsSnapshot)
        if not self._record(Feed.METRICS, result):
            return False
        self.metrics = result.payload
        self.panels["metrics"] = render_metrics_cards(self.metrics)
        return True

    async def _load_equity(self) -> bool:
        any_ok = False
        for position, (feed, value_field) in enumerate(EQUITY_SOURCES):
            result = decode_equity(await self.client.fetch_async(feed), value_field)
            if not self._record(feed, result):
                continue
            any_ok = True
            if result.payload:
                # Sources after this one were not consulted; their old errors are stale.
                for skipped, _ in EQUITY_SOURCES[position + 1:]:
                    self.last_errors.pop(skipped, None)
                self._install_equity(tuple(result.payload), feed)
                return True
            logger.debug("Equity feed %s returned no points", feed.value)
        if any_ok:
            self._install_equity((), None)
            return True
        return False

    def _install_equity(self, points: tuple[EquityPoint, ...], source: Feed | None) -> None:
        self.equity = points
        self.equity_source = source
        self.panels["equity"] = self.chart.draw(points)

    async def _load_table(self, name: str) -> bool:
        feed, decoder = TABLE_FEEDS[name]
        result = decoder(await self.client.fetch_async(feed))
        if not self._record(feed, result):
            return False
        store = self.stores[name]
        store.replace(result.payload or ())
        self._render_table(name)
        if name in COUNT_CARDS:
            key, label = COUNT_CARDS[name]
            count = result.count if result.count is not None else len(store.rows)
            self.counts[name] = count
            self.panels[key] = render_count_card(key, label, count)
        return True

    def toggle_sort(self, table: str, key: Any) -> RenderedTable:
        """Apply a header click to ``table`` and re-render only that table."""

        self.store(table).toggle_sort(key)
        return self._render_table(table)

    def set_filter(self, table: str, name: str, value: Any) -> RenderedTable:
        self.store(table).set_filter(name, value)
        return self._render_table(table)

    def clear_filters(self, table: str) -> RenderedTable:
        self.store(table).clear_filters()
        return self._render_table(table)


__all__ = ["Dashboard", "EQUITY_SOURCES", "TABLE_FEEDS"]
