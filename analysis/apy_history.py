# apy_history.py
from statistics import mean, pstdev
from typing import Optional, Sequence, Tuple

from analysis.models import APYHistoryPoint


def apy_trend(history: Sequence[APYHistoryPoint], window: int = 7) -> Optional[float]:
    """
    Percentage-point change between the average APY of the oldest and newest windows.

    History may be in any order; points are sorted by timestamp first. Returns None
    when there are fewer than two points.
    """
    if window <= 0:
        raise ValueError("Trend window must be positive")

    if len(history) < 2:
        return None

    ordered = sorted(history, key=lambda point: point.timestamp)
    size = min(window, len(ordered) // 2) or 1
    oldest = mean(point.apy for point in ordered[:size])
    newest = mean(point.apy for point in ordered[-size:])
    return newest - oldest


def apy_volatility(history: Sequence[APYHistoryPoint]) -> Optional[float]:
    """Population standard deviation of APY across the history, or None if empty."""
    if not history:
        return None
    return pstdev(point.apy for point in history)


def describe_apy_history(history: Sequence[APYHistoryPoint]) -> Tuple[Optional[float], str]:
    """Returns the trend and a short human-readable interpretation."""
    trend = apy_trend(history)
    if trend is None:
        return None, "Not enough APY history to judge the trend"

    volatility = apy_volatility(history) or 0.0
    if abs(trend) < 0.25:
        direction = "APY has been stable"
    elif trend > 0:
        direction = f"APY trending up {trend:+.2f} pts"
    else:
        direction = f"APY trending down {trend:+.2f} pts"

    if volatility > 2.0:
        return trend, f"{direction} with high volatility ({volatility:.2f} pts)"
    return trend, f"{direction} over {len(history)} observations"
