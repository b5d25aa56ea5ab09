"""
Formatting utilities.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

# Gulf Standard Time has no daylight saving
GST = timezone(timedelta(hours=4), "GST")


def format_currency(amount: Union[int, float], currency: str = "AED") -> str:
    """
    Format an amount as currency.

    Args:
        amount: The amount in whole units (e.g., dirhams, not fils).
        currency: Currency code (default AED).

    Returns:
        Formatted currency string.
    """
    symbols = {
        "GBP": "£",
        "USD": "$",
        "EUR": "€",
    }
    symbol = symbols.get(currency, currency + " ")
    if isinstance(amount, float) and amount.is_integer():
        amount = int(amount)
    return f"{symbol}{amount:,}"


def format_area(area: Optional[float]) -> str:
    """Format a floor area in square metres, or N/A when unknown."""
    if not area:
        return "N/A"
    if isinstance(area, float) and area.is_integer():
        area = int(area)
    return f"{area} m²"


def format_gst(moment: datetime) -> str:
    """
    Format a timestamp in Gulf Standard Time.

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(GST).strftime("%d %b %Y, %H:%M GST")
