import json
from datetime import timezone as dt_timezone
from zoneinfo import ZoneInfo

from django.utils import timezone
from django.utils.dateparse import parse_datetime


def json_body(request):
    """Decoded JSON object body, or ``None`` when it is missing, invalid or not an object."""
    try:
        data = json.loads(request.body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def parse_provider_timestamp(value, tz_name=None):
    """Parse a provider timestamp into an aware datetime.

    Naive values (Midtrans ``transaction_time``) are read in ``tz_name``,
    falling back to UTC. Unparseable input yields ``None``.
    """
    if not value:
        return None
    try:
        dt = parse_datetime(str(value).strip())
    except ValueError:
        return None
    if dt is None:
        return None
    if timezone.is_naive(dt):
        dt = dt.replace(tzinfo=ZoneInfo(tz_name) if tz_name else dt_timezone.utc)
    return dt
