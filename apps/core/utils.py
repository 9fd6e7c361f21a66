"""
Small helpers shared across apps.
"""

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.core.exceptions import BadRequest

TWO_PLACES = Decimal("0.01")


def money(value) -> Decimal:
    """Quantize to cents using half-up rounding."""
    return Decimal(value or 0).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percentage(part, whole) -> Decimal:
    """``part`` as a percentage of ``whole``; 0 when ``whole`` is zero."""
    whole = Decimal(whole or 0)
    if whole == 0:
        return Decimal("0.00")
    return money(Decimal(part or 0) / whole * 100)


def generate_daily_number(model, tenant, field, prefix):
    """
    Build the next ``PREFIX-YYYYMMDD-0001`` style number for a tenant.

    Counts rows (including soft-deleted ones) already numbered today, so
    numbers are never reused within a day.
    """
    date_str = timezone.now().strftime("%Y%m%d")
    stem = f"{prefix}-{date_str}"
    today_count = (
        model._base_manager.filter(tenant=tenant, **{f"{field}__startswith": stem}).count() + 1
    )
    return f"{stem}-{today_count:04d}"


def generate_sequence_number(model, tenant, field, prefix, width=8):
    """Build the next ``PREFIX-00000001`` style number, sequential per tenant."""
    count = model._base_manager.filter(tenant=tenant).count() + 1
    number = f"{prefix}-{count:0{width}d}"
    # Skip ahead if a number was taken out of order
    while model._base_manager.filter(tenant=tenant, **{field: number}).exists():
        count += 1
        number = f"{prefix}-{count:0{width}d}"
    return number


def day_bounds(day: date):
    """Aware datetimes covering one calendar day in the current time zone."""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    return start, start + timedelta(days=1)


def period_bounds(start_date: date, end_date: date):
    """Aware [start, end) datetimes for an inclusive range of days."""
    if end_date < start_date:
        raise BadRequest("end_date must not be before start_date.")
    start, _ = day_bounds(start_date)
    _, end = day_bounds(end_date)
    return start, end


def parse_period(query_params, default_days=30):
    """
    Read ``start_date``/``end_date`` (YYYY-MM-DD) from query params.

    Defaults to the last ``default_days`` days ending today.
    """
    today = timezone.localdate()
    end_date = _parse_param(query_params, "end_date") or today
    start_date = _parse_param(query_params, "start_date") or (
        end_date - timedelta(days=default_days - 1)
    )
    if end_date < start_date:
        raise BadRequest("end_date must not be before start_date.")
    return start_date, end_date


def _parse_param(query_params, name):
    raw = query_params.get(name)
    if not raw:
        return None
    try:
        parsed = parse_date(raw)
    except ValueError:
        parsed = None
    if parsed is None:
        raise BadRequest(f"Invalid {name}; expected YYYY-MM-DD.", details={name: raw})
    return parsed


def is_truthy(value) -> bool:
    return str(value).lower() in ["true", "1", "yes"]


def parse_day(query_params, name, default=None):
    """Single YYYY-MM-DD query parameter, or ``default`` when absent."""
    return _parse_param(query_params, name) or default
