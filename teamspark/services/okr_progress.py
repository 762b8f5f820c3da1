"""
Key-result progress arithmetic.

Progress and confidence are fractions in [0, 1]. Objective-level averages
are derived on read and never stored.
"""
from typing import Iterable, Optional


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def compute_metric_progress(
    current_value: Optional[float],
    target_value: Optional[float],
    start_value: Optional[float] = None,
) -> float:
    """
    Linear progress from start to target, clamped to [0, 1].

    ``start_value`` defaults to 0. When target equals start there is no
    range to divide by: the key result counts as done (1.0) once current
    reaches the target, otherwise 0.0. A descending target (target < start)
    works the same way through the sign of the range.
    """
    if target_value is None:
        return 0.0
    start = start_value if start_value is not None else 0.0
    current = current_value if current_value is not None else start

    span = target_value - start
    if span == 0:
        return 1.0 if current >= target_value else 0.0
    return clamp((current - start) / span)


def average_progress(key_results: Iterable) -> float:
    values = [kr.progress or 0.0 for kr in key_results]
    if not values:
        return 0.0
    return sum(values) / len(values)


def average_confidence(key_results: Iterable) -> float:
    """Mean over key results that report a confidence; 0 when none do."""
    values = [kr.confidence for kr in key_results if kr.confidence is not None]
    if not values:
        return 0.0
    return sum(values) / len(values)
