from datetime import date, datetime

import pytest

from algodash.data.models import BandPosition, IndicatorKind, Momentum, Verdict
from algodash.presentation import formatting as fmt


def test_currency_formatting():
    assert fmt.fmt_usd(1234.5) == "$1,234.50"
    assert fmt.fmt_usd(None) == fmt.PLACEHOLDER
    assert fmt.fmt_usd(0) == "$0.00"
    assert fmt.fmt_usd(-12) == "$-12.00"
    assert fmt.fmt_usd(1_000_000) == "$1,000,000.00"


def test_percentage_formatting():
    assert fmt.fmt_pct(0) == "0.00%"
    assert fmt.fmt_pct(0.1234) == "12.34%"
    assert fmt.fmt_pct(-0.05) == "-5.00%"
    assert fmt.fmt_pct(None) == fmt.PLACEHOLDER
    assert fmt.fmt_percent_points(55.5) == "55.50%"
    assert fmt.fmt_percent_points(None) == fmt.PLACEHOLDER


def test_number_formatting_never_shows_negative_zero():
    assert fmt.fmt_number(-0.001) == "0.00"
    assert fmt.fmt_number(float("nan")) == fmt.PLACEHOLDER
    assert fmt.fmt_number("abc") == fmt.PLACEHOLDER


@pytest.mark.parametrize(
    "value, expected",
    [(10, fmt.POSITIVE), (-0.01, fmt.NEGATIVE), (0, fmt.NEUTRAL), (None, fmt.NEUTRAL)],
)
def test_sign_class(value, expected):
    assert fmt.sign_class(value) == expected


def test_signed_prefix_only_marks_strictly_positive_values():
    assert fmt.signed_prefix(5) == "+"
    assert fmt.signed_prefix(0) == ""
    assert fmt.signed_prefix(-5) == ""
    assert fmt.fmt_signed_usd(25) == "+$25.00"
    assert fmt.fmt_signed_usd(-25) == "$-25.00"
    assert fmt.fmt_signed_usd(0) == "$0.00"
    assert fmt.fmt_signed_pct(0.1) == "+10.00%"
    assert fmt.fmt_signed_pct(None) == fmt.PLACEHOLDER


@pytest.mark.parametrize(
    "rsi, bucket",
    [(35, "oversold"), (75, "overbought"), (50, "neutral"), (None, "unclassified"),
     (40, "neutral"), (70, "neutral")],
)
def test_rsi_bucket(rsi, bucket):
    assert fmt.rsi_bucket(rsi) == bucket


def test_indicator_tags_and_text():
    assert fmt.indicator_tag(IndicatorKind.MOMENTUM, Momentum.STRONG_UP) == "good"
    assert fmt.indicator_tag("momentum", "strong down") == "bad"
    assert fmt.indicator_tag(IndicatorKind.BOLLINGER, BandPosition.BELOW_LOWER) == "good"
    assert fmt.indicator_tag(IndicatorKind.REGIME, "sideways") == "info"
    assert fmt.indicator_tag(IndicatorKind.VOLATILITY, "weird") == fmt.DEFAULT_TAG
    assert fmt.indicator_tag(IndicatorKind.VOLATILITY, None) == fmt.DEFAULT_TAG
    assert fmt.indicator_text(Momentum.UP) == "Up"
    assert fmt.indicator_text(None) == fmt.PLACEHOLDER
    assert fmt.indicator_text("  ") == fmt.PLACEHOLDER


def test_indicator_tag_rejects_unknown_kind():
    with pytest.raises(ValueError):
        fmt.indicator_tag("sentiment", "BULL")


def test_verdict_badges():
    assert fmt.verdict_badge(Verdict.BUY) == "badge-buy"
    assert fmt.verdict_badge("sell") == "badge-sell"
    assert fmt.verdict_badge("HOLD") == "badge-hold"
    assert fmt.verdict_badge(None) == "badge-muted"
    assert fmt.verdict_badge("maybe") == "badge-muted"


def test_dates_and_derived_changes():
    assert fmt.fmt_date(date(2024, 1, 5)) == "1/5/2024"
    assert fmt.fmt_date("2024-11-25T15:30:00") == "11/25/2024"
    assert fmt.fmt_date(None) == fmt.PLACEHOLDER
    assert fmt.fmt_date("not a date") == fmt.PLACEHOLDER
    assert fmt.fmt_timestamp(datetime(2024, 3, 9, 14, 5)) == "3/9/2024 14:05"
    assert fmt.pct_change(110, 100) == pytest.approx(0.10)
    assert fmt.pct_change(110, 0) is None
    assert fmt.pct_change(None, 100) is None


def test_quantity_and_text():
    assert fmt.fmt_quantity(1500) == "1,500"
    assert fmt.fmt_quantity(2.5) == "2.5"
    assert fmt.fmt_quantity(None) == fmt.PLACEHOLDER
    assert fmt.fmt_text(Verdict.HOLD) == "HOLD"
    assert fmt.fmt_text("") == fmt.PLACEHOLDER
