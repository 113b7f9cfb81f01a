# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from cafepos.extensions import db
from cafepos.models import Order, OrderLine, MenuItem
from cafepos.services.order_service import PAYMENT_METHODS
from cafepos.time_utils import parse_iso_datetime, utcnow, to_utc_z, to_local


# Morning shift runs 06:00-17:59 local time; everything else is the night shift
MORNING_SHIFT_START_HOUR = 6
NIGHT_SHIFT_START_HOUR = 18

UNCATEGORIZED = "Other"

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _utc_offset_hours() -> int:
    return int(current_app.config.get("CAFETERIA_UTC_OFFSET_HOURS", 0))


def _window_totals(start: datetime, end: datetime) -> tuple[int, int]:
    """(revenue_kobo, order_count) of completed orders with start <= created_at < end."""
    row = db.session.query(
        func.coalesce(func.sum(Order.total_kobo), 0),
        func.count(Order.id),
    ).filter(
        Order.status == "completed",
        Order.created_at >= start,
        Order.created_at < end,
    ).one()
    return int(row[0] or 0), int(row[1] or 0)


def _pct_change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100.0, 1)


def order_stats(now: datetime | None = None) -> dict:
    """
    Dashboard statistics over rolling windows ending at now.

    - total revenue / orders / average order value over the last 7 days
    - orders in the last 24 hours ("daily customers")
    - percentage change of each against the preceding window
    """
    now = now or utcnow()
    day_ago = now - timedelta(days=1)
    two_days_ago = now - timedelta(days=2)
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    # Upper bound is exclusive, so include orders stamped exactly at now
    upper = now + timedelta(microseconds=1)

    revenue, orders = _window_totals(week_ago, upper)
    last_revenue, last_orders = _window_totals(two_weeks_ago, week_ago)
    _, today_orders = _window_totals(day_ago, upper)
    _, yesterday_orders = _window_totals(two_days_ago, day_ago)

    avg = revenue / orders if orders else 0
    last_avg = last_revenue / last_orders if last_orders else 0

    return {
        "as_of": to_utc_z(now),
        "total_revenue_kobo": revenue,
        "revenue_change_pct": _pct_change(revenue, last_revenue),
        "total_orders": orders,
        "orders_change_pct": _pct_change(orders, last_orders),
        "avg_order_value_kobo": int(round(avg)),
        "avg_change_pct": _pct_change(avg, last_avg),
        "daily_customers": today_orders,
        "daily_change_pct": _pct_change(today_orders, yesterday_orders),
    }


def weekly_sales(now: datetime | None = None) -> list[dict]:
    """Revenue and order count for each of the last 7 local calendar days, oldest first."""
    now = now or utcnow()
    offset = _utc_offset_hours()
    local_today = to_local(now, offset).date()
    first_day = local_today - timedelta(days=6)

    # Local midnight of first_day expressed in UTC
    start = datetime.combine(first_day, datetime.min.time()) - timedelta(hours=offset)
    orders = db.session.query(Order.created_at, Order.total_kobo).filter(
        Order.status == "completed",
        Order.created_at >= start,
        Order.created_at <= now,
    ).all()

    buckets = {}
    for i in range(7):
        day = first_day + timedelta(days=i)
        buckets[day] = {"date": day.isoformat(), "day": DAY_NAMES[day.weekday()], "revenue_kobo": 0, "orders": 0}

    for created_at, total in orders:
        day = to_local(created_at, offset).date()
        if day in buckets:
            buckets[day]["revenue_kobo"] += total
            buckets[day]["orders"] += 1

    return list(buckets.values())


def category_sales(now: datetime | None = None, days: int = 7) -> list[dict]:
    """
    Revenue per menu category over the last `days` days, largest first.

    Lines are joined back to menu_items by menu_item_id; custom items and
    items no longer on the menu count as "Other". percentage is the rounded
    integer share of the window's line revenue.
    """
    now = now or utcnow()
    since = now - timedelta(days=days)

    category = func.coalesce(MenuItem.category, UNCATEGORIZED).label("category")
    rows = db.session.query(
        category,
        func.coalesce(func.sum(OrderLine.line_total_kobo), 0).label("amount"),
    ).join(
        Order, OrderLine.order_id == Order.id
    ).outerjoin(
        MenuItem, OrderLine.menu_item_id == MenuItem.id
    ).filter(
        Order.status == "completed",
        Order.created_at >= since,
        Order.created_at <= now,
    ).group_by(category).all()

    total = sum(int(row.amount or 0) for row in rows)
    result = [
        {
            "category": row.category,
            "amount_kobo": int(row.amount or 0),
            "percentage": int(round(int(row.amount or 0) / total * 100)) if total else 0,
        }
        for row in rows
    ]
    result.sort(key=lambda r: (-r["amount_kobo"], r["category"]))
    return result


def shift_of(local_dt: datetime) -> str:
    if MORNING_SHIFT_START_HOUR <= local_dt.hour < NIGHT_SHIFT_START_HOUR:
        return "morning"
    return "night"


def _empty_bucket() -> dict:
    return {
        "orders": 0,
        "total_kobo": 0,
        "payment_counts": {method: 0 for method in PAYMENT_METHODS},
    }


def _add_to_bucket(bucket: dict, total: int, payment_method: str) -> None:
    bucket["orders"] += 1
    bucket["total_kobo"] += total
    if payment_method in bucket["payment_counts"]:
        bucket["payment_counts"][payment_method] += 1


def _resolve_range(start, end, offset: int) -> tuple[datetime, datetime]:
    try:
        start_dt = parse_iso_datetime(start) if isinstance(start, str) else start
        end_dt = parse_iso_datetime(end) if isinstance(end, str) else end
    except ValueError:
        raise ReportError("start and end must be ISO-8601 datetimes")

    if start_dt is None:
        local_midnight = datetime.combine(to_local(utcnow(), offset).date(), datetime.min.time())
        start_dt = local_midnight - timedelta(hours=offset)
    if end_dt is None:
        end_dt = start_dt + timedelta(days=1)
    if end_dt <= start_dt:
        raise ReportError("end must be after start")
    return start_dt, end_dt


def shift_report(start=None, end=None) -> dict:
    """
    Completed orders in [start, end) grouped by local calendar day, each day
    split into morning and night shifts with payment method counts.

    start/end accept ISO-8601 strings or UTC-naive datetimes; the default is
    the current local day.
    """
    offset = _utc_offset_hours()
    start_dt, end_dt = _resolve_range(start, end, offset)

    orders = db.session.query(Order.created_at, Order.total_kobo, Order.payment_method).filter(
        Order.status == "completed",
        Order.created_at >= start_dt,
        Order.created_at < end_dt,
    ).order_by(Order.created_at.asc()).all()

    days: dict = {}
    grand = _empty_bucket()
    for created_at, total, method in orders:
        local_dt = to_local(created_at, offset)
        key = local_dt.date().isoformat()
        day = days.get(key)
        if day is None:
            day = days[key] = {
                "date": key,
                **_empty_bucket(),
                "shifts": {"morning": _empty_bucket(), "night": _empty_bucket()},
            }
        _add_to_bucket(day, total, method)
        _add_to_bucket(day["shifts"][shift_of(local_dt)], total, method)
        _add_to_bucket(grand, total, method)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "utc_offset_hours": offset,
        "days": [days[key] for key in sorted(days)],
        "total_orders": grand["orders"],
        "grand_total_kobo": grand["total_kobo"],
        "payment_counts": grand["payment_counts"],
    }
