import asyncio
from types import SimpleNamespace

import pytest

from algodash.config import DashboardSettings
from algodash.dashboard import Dashboard
from algodash.data.feeds import Feed, FeedClient, FetchErrorKind
from algodash.presentation.formatting import PLACEHOLDER

BASE_URL = "http://dashboard.test"


class DummyResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


class DummySession:
    def __init__(self, responses):
        self.responses = responses
        self.calls: list[SimpleNamespace] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(SimpleNamespace(url=url, params=params, timeout=timeout))
        return self.responses[url[len(BASE_URL):]]

    def close(self):
        pass


def _backend():
    responses = {
        Feed.ACCOUNT.value: DummyResponse(
            {"data": {"net_liquidation": 10_500.0, "cash": 2_500.0,
                      "total_position_value": 8_000.0, "unrealized_pnl": 120.0,
                      "realized_pnl": -30.0, "num_positions": 2, "date": "2024-06-03"}}),
        Feed.METRICS.value: DummyResponse(
            {"data": {"sharpe_ratio": 1.4, "max_drawdown": 0.08, "total_return": 0.05,
                      "win_rate": 60.0}}),
        Feed.ACCOUNT_HISTORY.value: DummyResponse(
            {"data": [{"date": "2024-06-01", "net_liquidation": 10_000.0},
                      {"date": "2024-06-02", "net_liquidation": 10_250.0}]}),
        Feed.PORTFOLIO_HISTORY.value: DummyResponse({"data": []}),
        Feed.SCANNER.value: DummyResponse(
            {"scan_date": "2024-06-03",
             "data": [{"symbol": "MSFT", "rsi_14": 72, "signal": "SELL"},
                      {"symbol": "AAPL", "rsi_14": 35, "signal": "BUY", "held": True}]}),
        Feed.POSITIONS.value: DummyResponse(
            {"data": [{"symbol": "AAPL", "quantity": 10, "avg_cost": 100.0,
                       "market_value": 1_100.0, "unrealized_pnl": 100.0},
                      {"symbol": "NVDA", "quantity": 5, "avg_cost": 400.0,
                       "market_value": 2_200.0, "unrealized_pnl": 200.0}],
             "count": 2}),
        Feed.SIGNALS.value: DummyResponse(
            {"data": [{"symbol": "AAPL", "signal_type": "BUY", "quantity": 3}], "count": 7}),
        Feed.TRADES.value: DummyResponse(
            {"data": [{"date": "2024-06-01", "symbol": "AAPL", "action": "BUY",
                       "quantity": 10, "price": 100.0},
                      {"date": "2024-06-02", "symbol": "TSLA", "action": "SELL",
                       "quantity": 2, "price": 180.0, "pnl": 15.0}]}),
    }
    return responses


def make_dashboard(responses) -> tuple[Dashboard, DummySession]:
    session = DummySession(responses)
    settings = DashboardSettings(api_base_url=BASE_URL)
    return Dashboard(FeedClient(settings, session=session)), session


def _cards(cards):
    return {card.key: card for card in cards}


def test_initial_panels_are_placeholders():
    dashboard, session = make_dashboard(_backend())

    assert session.calls == []
    assert all(card.text == PLACEHOLDER for card in dashboard.panels["account"])
    assert dashboard.panels["equity"] is None
    assert dashboard.panels["positions"].rows[0].placeholder
    assert dashboard.panels["trades_count"].text == PLACEHOLDER


def test_refresh_renders_every_panel():
    dashboard, session = make_dashboard(_backend())

    outcome = asyncio.run(dashboard.refresh())

    assert all(outcome.values())
    assert dashboard.last_errors == {}
    account = _cards(dashboard.panels["account"])
    assert account["net_liquidation"].text == "$10,500.00"
    assert account["free_cash"].text == "$2,500.00"
    assert account["as_of"].text == "Updated: 6/3/2024"
    assert _cards(dashboard.panels["metrics"])["total_return"].text == "+5.00%"
    assert [row.key for row in dashboard.panels["positions"].rows] == ["NVDA", "AAPL"]
    assert [row.key for row in dashboard.panels["scanner"].rows] == ["AAPL", "MSFT"]
    assert [row.key for row in dashboard.panels["trades"].rows] == ["TSLA", "AAPL"]
    assert dashboard.equity_source is Feed.ACCOUNT_HISTORY
    assert dashboard.panels["equity"].series[0].values == (10_000.0, 10_250.0)
    assert len(session.calls) == len(Feed) - 1


def test_count_cards_prefer_envelope_count():
    dashboard, _ = make_dashboard(_backend())

    asyncio.run(dashboard.refresh())

    assert dashboard.counts == {"signals": 7, "trades": 2}
    assert dashboard.panels["signals_count"].text == "7"
    assert dashboard.panels["trades_count"].text == "2"


def test_failed_feed_only_affects_its_own_panel():
    dashboard, _ = make_dashboard(
        _backend_with(Feed.METRICS, DummyResponse({"detail": "boom"}, status_code=500)))

    outcome = asyncio.run(dashboard.refresh())

    assert outcome["metrics"] is False
    assert outcome["positions"] is True
    assert all(card.text == PLACEHOLDER for card in dashboard.panels["metrics"])
    assert len(dashboard.panels["positions"].rows) == 2
    error = dashboard.last_errors[Feed.METRICS]
    assert error.kind is FetchErrorKind.TRANSPORT
    assert error.status_code == 500


def test_failure_keeps_previous_snapshot_and_success_clears_error():
    responses = _backend()
    dashboard, _ = make_dashboard(responses)
    asyncio.run(dashboard.refresh())

    responses[Feed.ACCOUNT.value] = DummyResponse({"data": "not an object"})
    asyncio.run(dashboard.refresh())

    assert _cards(dashboard.panels["account"])["net_liquidation"].text == "$10,500.00"
    assert dashboard.last_errors[Feed.ACCOUNT].kind is FetchErrorKind.DECODE

    responses[Feed.ACCOUNT.value] = DummyResponse({"data": {"net_liquidation": 11_000.0}})
    asyncio.run(dashboard.refresh())

    assert _cards(dashboard.panels["account"])["net_liquidation"].text == "$11,000.00"
    assert Feed.ACCOUNT not in dashboard.last_errors


def test_equity_falls_back_when_primary_history_is_empty():
    dashboard, _ = make_dashboard(_backend_with(
        Feed.ACCOUNT_HISTORY, DummyResponse({"data": []}),
        Feed.PORTFOLIO_HISTORY, DummyResponse(
            {"data": [{"date": "2024-06-03", "total_equity": 103.0},
                      {"date": "2024-06-01", "total_equity": 101.0},
                      {"date": "2024-06-02", "total_equity": 102.0}]}),
    ))

    asyncio.run(dashboard.refresh())

    assert dashboard.equity_source is Feed.PORTFOLIO_HISTORY
    assert [point.value for point in dashboard.equity] == [101.0, 102.0, 103.0]
    chart = dashboard.panels["equity"]
    assert chart.labels == ("6/1/2024", "6/2/2024", "6/3/2024")
    assert len(chart.series) == 1


def test_equity_falls_back_when_primary_history_fails():
    dashboard, _ = make_dashboard(_backend_with(
        Feed.ACCOUNT_HISTORY, DummyResponse(status_code=503),
        Feed.PORTFOLIO_HISTORY, DummyResponse(
            {"data": [{"date": "2024-06-01", "total_equity": 101.0}]}),
    ))

    outcome = asyncio.run(dashboard.refresh())

    assert outcome["equity"] is True
    assert dashboard.equity_source is Feed.PORTFOLIO_HISTORY
    assert Feed.ACCOUNT_HISTORY in dashboard.last_errors


def test_equity_with_no_points_anywhere_draws_empty_chart():
    dashboard, _ = make_dashboard(_backend_with(Feed.ACCOUNT_HISTORY, DummyResponse({"data": []})))

    asyncio.run(dashboard.refresh())
    asyncio.run(dashboard.refresh())

    assert dashboard.equity == ()
    assert dashboard.equity_source is None
    assert dashboard.panels["equity"].labels == ()
    assert dashboard.chart.releases == 1


def test_view_actions_rerender_and_survive_refresh():
    dashboard, _ = make_dashboard(_backend())
    asyncio.run(dashboard.refresh())

    table = dashboard.toggle_sort("positions", "symbol")
    assert [row.key for row in table.rows] == ["AAPL", "NVDA"]
    assert dashboard.panels["positions"] is table

    table = dashboard.set_filter("scanner", "signal", "sell")
    assert [row.key for row in table.rows] == ["MSFT"]

    asyncio.run(dashboard.refresh())
    assert [row.key for row in dashboard.panels["positions"].rows] == ["AAPL", "NVDA"]
    assert [row.key for row in dashboard.panels["scanner"].rows] == ["MSFT"]

    table = dashboard.clear_filters("scanner")
    assert len(table.rows) == 2


def test_unknown_table_raises_key_error():
    dashboard, _ = make_dashboard(_backend())
    with pytest.raises(KeyError):
        dashboard.toggle_sort("orders", "symbol")


def test_poll_runs_requested_iterations():
    dashboard, session = make_dashboard(_backend())
    seen = []

    asyncio.run(dashboard.poll(interval=0, iterations=2, on_refresh=seen.append))

    assert seen == [dashboard, dashboard]
    assert len(session.calls) == 2 * (len(Feed) - 1)


def _backend_with(*pairs):
    responses = _backend()
    for feed, response in zip(pairs[::2], pairs[1::2]):
        responses[feed.value] = response
    return responses


def test_recovered_primary_equity_clears_stale_fallback_error():
    responses = _backend_with(
        Feed.ACCOUNT_HISTORY, DummyResponse(status_code=503),
        Feed.PORTFOLIO_HISTORY, DummyResponse(status_code=503),
    )
    dashboard, _ = make_dashboard(responses)

    assert asyncio.run(dashboard.refresh())["equity"] is False
    assert set(dashboard.last_errors) == {Feed.ACCOUNT_HISTORY, Feed.PORTFOLIO_HISTORY}

    responses[Feed.ACCOUNT_HISTORY.value] = DummyResponse(
        {"data": [{"date": "2024-06-01", "net_liquidation": 10_000.0}]})
    asyncio.run(dashboard.refresh())

    assert dashboard.last_errors == {}
    assert dashboard.equity_source is Feed.ACCOUNT_HISTORY


def test_null_held_flag_keeps_scanner_panel():
    dashboard, _ = make_dashboard(_backend_with(
        Feed.SCANNER, DummyResponse(
            {"data": [{"symbol": "AAPL", "rsi_14": 35, "held": None},
                      {"symbol": "MSFT", "rsi_14": 72}]}),
    ))

    asyncio.run(dashboard.refresh())

    assert Feed.SCANNER not in dashboard.last_errors
    assert [row.key for row in dashboard.panels["scanner"].rows] == ["AAPL", "MSFT"]
