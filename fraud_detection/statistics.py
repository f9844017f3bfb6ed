"""
Fraud Detection Engine - Rolling Statistics.

Integer-only statistics over a bounded price history.
All results are floored; no floating point is involved so
that results are reproducible from stored state.
"""

from collections import deque
from datetime import datetime
from typing import Deque, Iterable, List, Sequence

from product_ledger.types import ProductStage

from .types import MAX_HISTORY_POINTS, PriceSample


def integer_sqrt(n: int) -> int:
    """
    Floor of the square root of ``n`` using Newton's method.

    Raises:
        ValueError: for negative input
    """
    if n < 0:
        raise ValueError(f"integer_sqrt of negative number: {n}")
    if n < 2:
        return n

    x = n
    y = (x + 1) // 2
    while y < x:
        x = y
        y = (x + n // x) // 2
    return x


def integer_mean(values: Sequence[int]) -> int:
    if not values:
        raise ValueError("mean of empty sequence")
    return sum(values) // len(values)


def population_stddev(values: Sequence[int], mean: int) -> int:
    """Population standard deviation around ``mean``."""
    if not values:
        raise ValueError("stddev of empty sequence")
    variance = sum((v - mean) ** 2 for v in values) // len(values)
    return integer_sqrt(variance)


class PriceHistoryWindow:
    """
    Bounded FIFO of price samples for one product.

    Appending past the bound evicts the oldest sample in O(1).
    """

    def __init__(self, maxlen: int = MAX_HISTORY_POINTS, samples: Iterable[PriceSample] = ()):
        self._samples: Deque[PriceSample] = deque(samples, maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._samples.maxlen or MAX_HISTORY_POINTS

    def append(self, price: int, timestamp: datetime, stage: ProductStage) -> PriceSample:
        sample = PriceSample(price=price, timestamp=timestamp, stage=stage)
        self._samples.append(sample)
        return sample

    def prices(self) -> List[int]:
        return [s.price for s in self._samples]

    def samples(self) -> List[PriceSample]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)
