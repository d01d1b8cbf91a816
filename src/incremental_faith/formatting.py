from __future__ import annotations

MILLION = 1_000_000
THOUSAND = 1_000


def format_number(value: float, decimals: int = 0) -> str:
    """Format a resource amount for display, e.g. 1500 -> '1.5K' with decimals=1.

    Values at or above a threshold are divided and suffixed; everything else
    is printed with ``decimals`` fixed decimal places.
    """
    if value >= MILLION:
        return f"{value / MILLION:.{decimals}f}M"
    if value >= THOUSAND:
        return f"{value / THOUSAND:.{decimals}f}K"
    return f"{value:.{decimals}f}"
