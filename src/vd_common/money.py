"""Integer arithmetic for minor-unit prices and whole-credit amounts.

Prices are stored in cents (int) and credits are whole numbers (int). Floats
only appear at the CRM boundary, where prices arrive as decimal major units.
"""


def cents_to_display(cents: int, currency: str = "usd") -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    symbol = "$" if currency.lower() == "usd" else f"{currency.upper()} "
    if cents < 0:
        abs_cents = -cents
        return f"-{symbol}{abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"{symbol}{cents // 100:,}.{cents % 100:02d}"


def major_to_cents(amount: float | int | str | None) -> int | None:
    """Convert a major-unit price from the CRM (19.99) to cents (1999). None stays None."""
    if amount is None or amount == "":
        return None
    return int(round(float(amount) * 100))


def call_cost(duration_seconds: int, rate_per_minute: int) -> int:
    """Credits charged for a call, pro rata per second, rounded up.

    cost = ceil(duration_seconds * rate_per_minute / 60)
    Using integer ceiling: (a + b - 1) // b
    """
    if duration_seconds <= 0 or rate_per_minute <= 0:
        return 0
    return (duration_seconds * rate_per_minute + 59) // 60
