"""
Synthetic price trend for charting.

The model only gives us a current price and a percent change over the
reporting window, so the chart is a fabricated, visually plausible path:
linear from the implied starting price to the current price, with small
pseudo-noise seeded by the ticker. It is a visual approximation and must not
be presented as historical market data. Time labels are relative hour
offsets ("-22h" ... "now"), not timestamps.
"""
import hashlib
import math
import random
from decimal import Decimal
from typing import Iterator, List, Union

from marketinsight.models.pipeline import ChartSeries
from marketinsight.models.stock import ChartPoint
from marketinsight.utils.logger import logger

TOTAL_LOSS = -100.0


def _seed_for(ticker: str) -> int:
    digest = hashlib.sha256(ticker.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class ChartSynthesizer:
    def __init__(self, points: int = 12, interval_hours: int = 2, noise_ratio: float = 0.15):
        if points < 2:
            raise ValueError("A chart needs at least two points")
        if interval_hours < 1:
            raise ValueError("interval_hours must be positive")
        self.points = points
        self.interval_hours = interval_hours
        self.noise_ratio = noise_ratio

    def labels(self) -> List[str]:
        labels = []
        for i in range(self.points):
            offset = self.interval_hours * (self.points - 1 - i)
            labels.append(f"-{offset}h" if offset else "now")
        return labels

    @staticmethod
    def is_degenerate(change_value: float) -> bool:
        # -100% makes the starting price undefined; below that it would be negative
        return change_value <= TOTAL_LOSS

    def iter_series(self, ticker: str, price: Union[Decimal, float], change_value: float) -> Iterator[ChartPoint]:
        """Lazily yield the chart points, oldest first. The last value is exactly `price`."""
        end = float(price)
        labels = self.labels()

        if self.is_degenerate(change_value):
            for label in labels:
                yield ChartPoint(time=label, value=end)
            return

        start = end / (1 + change_value / 100)
        amplitude = self.noise_ratio * max(abs(end - start), end * 0.01)
        rng = random.Random(_seed_for(ticker))
        last = self.points - 1

        for i, label in enumerate(labels):
            t = i / last
            jitter = rng.uniform(-1.0, 1.0)
            if i == last:
                value = end
            else:
                # sin envelope keeps the first point noise-free so the overall change is exact
                base = start + (end - start) * t
                value = max(0.0, base + amplitude * math.sin(math.pi * t) * jitter)
            yield ChartPoint(time=label, value=value)

    def synthesize(self, ticker: str, price: Union[Decimal, float], change_value: float) -> ChartSeries:
        degenerate = self.is_degenerate(change_value)
        if degenerate:
            logger.warning(f"⚠️ ChartSynthesisDegenerate: {ticker} change {change_value}% flattened to price {price}")
        points = list(self.iter_series(ticker, price, change_value))
        return ChartSeries(points=points, degenerate=degenerate)
