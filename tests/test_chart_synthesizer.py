import inspect
from decimal import Decimal

import pytest

from marketinsight.services.chart_synthesizer import ChartSynthesizer


def percent_change(points):
    first, last = points[0].value, points[-1].value
    return (last - first) / first * 100


def test_series_shape_and_labels():
    series = ChartSynthesizer().synthesize("AAPL", Decimal("192.34"), 1.25)
    assert len(series.points) == 12
    assert series.points[0].time == "-22h"
    assert series.points[-2].time == "-2h"
    assert series.points[-1].time == "now"
    assert series.degenerate is False


@pytest.mark.parametrize("ticker, price, change", [
    ("AAPL", Decimal("192.34"), 1.25),
    ("TSLA", Decimal("248.10"), -7.8),
    ("BTC-USD", Decimal("67012.55"), 3.4),
    ("PENNY", Decimal("0.0042"), 55.0),
    ("FLAT", Decimal("10"), 0.0),
    ("CRASH", Decimal("1.50"), -99.5),
])
def test_series_ends_at_price_and_matches_change(ticker, price, change):
    points = ChartSynthesizer().synthesize(ticker, price, change).points
    assert points[-1].value == float(price)
    assert abs(percent_change(points) - change) <= 0.5
    assert all(p.value >= 0 for p in points)


def test_series_is_deterministic():
    synthesizer = ChartSynthesizer()
    assert synthesizer.synthesize("NVDA", Decimal("120.5"), 2.0) == synthesizer.synthesize("NVDA", Decimal("120.5"), 2.0)


def test_different_tickers_look_different():
    synthesizer = ChartSynthesizer()
    nvda = [p.value for p in synthesizer.synthesize("NVDA", Decimal("100"), 2.0).points]
    amd = [p.value for p in synthesizer.synthesize("AMD", Decimal("100"), 2.0).points]
    assert nvda[0] == amd[0] and nvda[-1] == amd[-1]
    assert nvda != amd


@pytest.mark.parametrize("change", [-100.0, -150.0])
def test_total_loss_is_flattened(change):
    series = ChartSynthesizer().synthesize("GONE", Decimal("0.00"), change)
    assert series.degenerate is True
    assert len(series.points) == 12
    assert all(p.value == 0.0 for p in series.points)


def test_total_loss_with_nonzero_price_is_flat_at_price():
    series = ChartSynthesizer().synthesize("RIVN", Decimal("3.10"), -100.0)
    assert series.degenerate is True
    assert len(series.points) == 12
    assert all(p.value == 3.10 for p in series.points)
    assert series.points[-1].time == "now"


def test_series_is_lazy():
    generator = ChartSynthesizer().iter_series("AAPL", 192.34, 1.25)
    assert inspect.isgenerator(generator)
    assert next(generator).time == "-22h"


def test_custom_length_and_interval():
    synthesizer = ChartSynthesizer(points=5, interval_hours=6)
    assert synthesizer.labels() == ["-24h", "-18h", "-12h", "-6h", "now"]


def test_zero_price_stays_at_zero():
    points = ChartSynthesizer().synthesize("ZERO", Decimal("0"), 5.0).points
    assert all(p.value == 0.0 for p in points)


def test_needs_two_points():
    with pytest.raises(ValueError):
        ChartSynthesizer(points=1)
