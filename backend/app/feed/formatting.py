"""Display formatting for prices, volumes and changes.

Precision follows magnitude: sub-cent coins need up to eight decimals while
large prices only need two.
"""


def _decimals(value: float) -> int:
    value = abs(value)
    if value < 0.00001:
        return 8
    if value < 0.0001:
        return 6
    if value < 0.01:
        return 5
    if value < 1:
        return 4
    if value < 100:
        return 3
    return 2


def format_price(price: float) -> str:
    return f"{price:.{_decimals(price)}f}"


def format_change(change: float) -> str:
    """Absolute change, banded on its magnitude."""
    return f"{change:.{_decimals(change)}f}"


def format_volume(volume: float) -> str:
    if volume >= 1e9:
        return f"${volume / 1e9:.3f}B"
    if volume >= 1e6:
        return f"${volume / 1e6:.3f}M"
    if volume >= 1e3:
        return f"${volume / 1e3:.3f}K"
    if volume < 1:
        return f"${volume:.4f}"
    return f"${volume:.2f}"


def format_percent(percent: float) -> str:
    """Signed percentage with two decimals, e.g. ``+5.00%``."""
    return f"{percent:+.2f}%"
