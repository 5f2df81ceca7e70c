from datetime import datetime, timezone


def naive_utc(value):
    """Stored datetimes are naive UTC; convert aware values on the way in."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def normalize_datetimes(doc: dict) -> dict:
    return {key: naive_utc(value) for key, value in doc.items()}
