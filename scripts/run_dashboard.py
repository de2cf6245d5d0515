"""Poll the trading backend and print the dashboard panels to the console."""

from __future__ import annotations

import argparse
import asyncio
import locale
import logging

from algodash.config import DashboardSettings
from algodash.dashboard import Dashboard
from algodash.presentation.render import Card, LineChart, RenderedTable


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--base-url",
        default=None,
        help="Backend origin (default: ALGODASH_API_BASE_URL or http://localhost:8000).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between polls (default: ALGODASH_REFRESH_INTERVAL).",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=1,
        help="Number of polls before exiting; 0 polls forever (default: 1).",
    )
    parser.add_argument(
        "--sort",
        action="append",
        default=[],
        metavar="TABLE:FIELD",
        help="Toggle a sort field before printing, e.g. positions:symbol. Repeatable.",
    )
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar="TABLE:NAME=VALUE",
        help="Apply a table filter, e.g. scanner:signal=BUY. Repeatable.",
    )
    return parser.parse_args()


def _print_cards(title: str, cards: tuple[Card, ...]) -> None:
    print(f"== {title}")
    for card in cards:
        print(f"  {card.label:<16} {card.text}")


def _print_table(table: RenderedTable) -> None:
    print(f"== {table.name}")
    print(table.as_text())


def _print_chart(chart: LineChart | None) -> None:
    print("== equity")
    if chart is None or not chart.labels:
        print("  No data yet")
        return
    frame = chart.to_frame()
    print(frame.tail(10).to_string())


def print_dashboard(dashboard: Dashboard) -> None:
    panels = dashboard.panels
    _print_cards("account", panels["account"])
    _print_cards("metrics", panels["metrics"])
    _print_cards("activity", (panels["signals_count"], panels["trades_count"]))
    _print_chart(panels["equity"])
    for name in ("positions", "scanner", "signals", "trades"):
        _print_table(panels[name])
    for feed, error in dashboard.last_errors.items():
        print(f"!! {feed.name}: {error}")


def configure_host(settings: DashboardSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Symbol and strategy sorting collate with the user locale.
    locale.setlocale(locale.LC_COLLATE, "")


def _apply_view_options(dashboard: Dashboard, sorts: list[str], filters: list[str]) -> None:
    for option in sorts:
        table, _, field = option.partition(":")
        dashboard.toggle_sort(table, field)
    for option in filters:
        table, _, expression = option.partition(":")
        name, _, value = expression.partition("=")
        dashboard.set_filter(table, name, value)


def main() -> None:
    args = parse_args()
    overrides = {}
    if args.base_url is not None:
        overrides["api_base_url"] = args.base_url
    if args.interval is not None:
        overrides["refresh_interval"] = args.interval
    settings = DashboardSettings(**overrides)

    configure_host(settings)

    dashboard = Dashboard(settings=settings)
    _apply_view_options(dashboard, args.sort, args.filter)

    def on_refresh(current: Dashboard) -> None:
        print_dashboard(current)

    iterations = args.iterations if args.iterations > 0 else None
    try:
        asyncio.run(dashboard.poll(iterations=iterations, on_refresh=on_refresh))
    except KeyboardInterrupt:
        pass
    finally:
        dashboard.close()


if __name__ == "__main__":
    main()
