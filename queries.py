"""Read-side views over the canonical lists.

Every function here returns new lists and leaves its input untouched.
"""
import calendar
import math
from datetime import datetime, timedelta

from models import ALL_CATEGORIES

PER_PAGE = 10

DATE_RANGES = ["all", "today", "week", "month"]
REPORT_PERIODS = ["day", "week", "month"]


def _months_ago(when, months=1):
    month = when.month - months
    year = when.year
    while month < 1:
        month += 12
        year -= 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return when.replace(year=year, month=month, day=day)


def filter_products(products, search="", category=ALL_CATEGORIES):
    """Cashier grid: category tab plus a case-insensitive name search."""
    result = list(products)
    if category and category != ALL_CATEGORIES:
        result = [p for p in result if p.category == category]
    query = (search or "").strip().lower()
    if query:
        result = [p for p in result if query in p.name.lower()]
    return result


def search_products(products, query):
    query = (query or "").strip().lower()
    if not query:
        return list(products)
    return [p for p in products if query in p.name.lower() or query in p.category.lower()]


def search_users(users, query):
    query = (query or "").strip().lower()
    if not query:
        return list(users)
    return [u for u in users
            if query in u.name.lower() or query in u.username.lower() or query in u.role.lower()]


def filter_transactions(transactions, query="", date=None, date_range="all", now=None):
    """History filter.

    ``query`` matches the transaction id or the customer name. A specific
    calendar ``date`` wins over ``date_range``; ranges run from the cutoff day
    up to the end of today.
    """
    result = list(transactions)
    query = (query or "").strip().lower()
    if query:
        result = [t for t in result
                  if query in str(t.id) or query in (t.customer_name or "").lower()]

    if date is not None:
        result = [t for t in result if t.date.date() == date]
    elif date_range and date_range != "all":
        now = now or datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if date_range == "today":
            cutoff = today
        elif date_range == "week":
            cutoff = today - timedelta(days=7)
        elif date_range == "month":
            cutoff = _months_ago(today)
        else:
            raise ValueError(f"Unknown date range: {date_range}")
        end = today + timedelta(days=1)
        result = [t for t in result if cutoff <= t.date < end]
    return result


def paginate(items, page=1, per_page=PER_PAGE):
    """Return (items on page, total pages, page actually shown)."""
    total_pages = max(1, math.ceil(len(items) / per_page))
    page = min(max(1, page), total_pages)
    start = (page - 1) * per_page
    return list(items[start:start + per_page]), total_pages, page


#reports
def filter_by_period(transactions, period="week", now=None):
    now = now or datetime.now()
    if period == "day":
        cutoff = now - timedelta(days=1)
    elif period == "week":
        cutoff = now - timedelta(days=7)
    elif period == "month":
        cutoff = _months_ago(now)
    else:
        raise ValueError(f"Unknown report period: {period}")
    return [t for t in transactions if t.date >= cutoff]


def summarize(transactions):
    total_sales = round(sum(t.total for t in transactions), 2)
    count = len(transactions)
    average = round(total_sales / count, 2) if count else 0.0
    return {'total_sales': total_sales, 'count': count, 'average': average}


def sales_by_day(transactions):
    """[(date, total)] in ascending date order."""
    totals = {}
    for t in transactions:
        day = t.date.date()
        totals[day] = totals.get(day, 0.0) + t.total
    return [(day, round(totals[day], 2)) for day in sorted(totals)]


def top_products(transactions, limit=5):
    """Best sellers by revenue: [(name, revenue)]."""
    revenue = {}
    for t in transactions:
        for item in t.items:
            name = item.get('name')
            revenue[name] = revenue.get(name, 0.0) + float(item.get('subtotal') or 0)
    ranked = sorted(revenue.items(), key=lambda kv: (-kv[1], kv[0]))
    return [(name, round(value, 2)) for name, value in ranked[:limit]]


def top_products_by_quantity(transactions, limit=10):
    qty = {}
    for t in transactions:
        for item in t.items:
            name = item.get('name')
            qty[name] = qty.get(name, 0) + int(item.get('quantity') or 0)
    ranked = sorted(qty.items(), key=lambda kv: (-kv[1], kv[0]))
    return ranked[:limit]
