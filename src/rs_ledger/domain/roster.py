"""Pure roster rules: display names and fill rate."""


def display_name(
    member_id: str,
    full_name: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> str:
    """Prefer the stored full name, then 'first last', then the raw member id."""
    if full_name and full_name.strip():
        return full_name.strip()
    joined = " ".join(part for part in (first_name, last_name) if part).strip()
    return joined or member_id


def fill_rate(enrolled: int, capacity: int) -> int:
    """Percentage of places taken, rounded half-up; 0 for a zero-capacity course."""
    if capacity <= 0:
        return 0
    # Integer half-up rounding; Python's round() is banker's rounding
    return (200 * enrolled + capacity) // (2 * capacity)
