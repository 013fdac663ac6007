"""
Formatting utilities.
"""


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format an amount as currency.

    Args:
        amount: The amount in whole units (e.g., dollars, not cents).
        currency: Currency code (default USD).

    Returns:
        Formatted currency string, sign before the symbol.
    """
    symbols = {
        "USD": "$",
        "GBP": "£",
        "EUR": "€",
    }
    symbol = symbols.get(currency, currency + " ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(round(amount)):,}"


def format_percent(value: float, decimals: int = 1) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    return f"{value:.{decimals}f}%"


def format_bed_bath(bedrooms, bathrooms) -> str:
    """Short layout label, e.g. "Studio/1BA" or "2BR/1.5BA"."""
    beds = "Studio" if bedrooms == 0 else f"{bedrooms}BR" if bedrooms is not None else "?BR"
    if bathrooms is None:
        return f"{beds}/?BA"
    baths = f"{bathrooms:g}"
    return f"{beds}/{baths}BA"
