"""Club finance aggregation: dashboards, player ledgers and payment references."""

from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

ZERO = Decimal("0")
CENT = Decimal("0.01")

INCOME = "Income"
EXPENSE = "Expense"
COMPLETED = "Completed"
PENDING = "Pending"

PERIODS = ("thisMonth", "last3Months", "last6Months", "thisYear", "all")
ALL_TIME_START = dt.date(2020, 1, 1)
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

PAYMENT_TYPE_CODES = {
    "registration": "REG",
    "match_fee": "MF",
    "membership": "MEM",
    "event": "EVT",
    "other": "OTH",
}
REFERENCE_PATTERN = re.compile(r"[A-Z]{2}\d{4}(?:REG|MF|MEM|EVT|OTH)\d{8}", re.IGNORECASE)

CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€", "INR": "₹", "AUD": "A$"}


def to_amount(value: Any) -> Decimal:
    if value in (None, ""):
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def to_date(value: Any) -> Optional[dt.date]:
    if not value:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def month_start(day: dt.date) -> dt.date:
    return day.replace(day=1)


def shift_months(day: dt.date, months: int) -> dt.date:
    """First day of the month ``months`` away from ``day``."""

    index = day.year * 12 + (day.month - 1) + months
    return dt.date(index // 12, index % 12 + 1, 1)


def month_end(day: dt.date) -> dt.date:
    return shift_months(day, 1) - dt.timedelta(days=1)


def percent_change(current: Decimal, previous: Decimal) -> Optional[float]:
    if not previous:
        return None
    return round(float((current - previous) / previous * 100), 1)


def _percent(part: Decimal, whole: Decimal) -> float:
    if whole <= 0:
        return 0.0
    return round(float(part / whole * 100), 1)


def _sum(rows: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((to_amount(row.get("amount")) for row in rows), ZERO)


def _within(day: Optional[dt.date], start: Optional[dt.date], end: dt.date) -> bool:
    if day is None:
        return False
    return (start is None or day >= start) and day <= end


def _category(row: Mapping[str, Any]) -> str:
    return row.get("category_name") or row.get("category") or "Other"


def _category_totals(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    totals: Dict[str, Decimal] = {}
    for row in rows:
        name = _category(row)
        totals[name] = totals.get(name, ZERO) + to_amount(row.get("amount"))
    return [
        {"name": name, "value": value}
        for name, value in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]


def _split(rows: Sequence[Mapping[str, Any]]) -> Tuple[List[Mapping[str, Any]], List[Mapping[str, Any]]]:
    income = [row for row in rows if row.get("type") == INCOME]
    expense = [row for row in rows if row.get("type") == EXPENSE]
    return income, expense


def finance_overview(
    transactions: Sequence[Mapping[str, Any]],
    memberships: Sequence[Mapping[str, Any]] = (),
    today: Optional[dt.date] = None,
) -> Dict[str, Any]:
    """Headline figures for the finance dashboard.

    Only ``Completed`` transactions count towards totals and trends;
    ``Pending`` ones are reported separately.
    """

    today = today or dt.date.today()
    completed = [t for t in transactions if t.get("status") == COMPLETED]
    income, expense = _split(completed)
    total_income = _sum(income)
    total_expenses = _sum(expense)
    balance = total_income - total_expenses

    def month_totals(first: dt.date) -> Tuple[Decimal, Decimal]:
        last = month_end(first)
        in_month = [t for t in completed if _within(to_date(t.get("date")), first, last)]
        month_income, month_expense = _split(in_month)
        return _sum(month_income), _sum(month_expense)

    this_month = month_start(today)
    this_income, this_expense = month_totals(this_month)
    last_income, last_expense = month_totals(shift_months(this_month, -1))

    monthly = []
    for offset in range(5, -1, -1):
        first = shift_months(this_month, -offset)
        bucket_income, bucket_expense = month_totals(first)
        monthly.append(
            {
                "month": MONTH_NAMES[first.month - 1],
                "year": first.year,
                "income": bucket_income,
                "expenses": bucket_expense,
            }
        )

    pending = [t for t in transactions if t.get("status") == PENDING]

    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "balance": balance,
        "this_month_income": this_income,
        "this_month_expense": this_expense,
        "last_month_income": last_income,
        "last_month_expense": last_expense,
        "income_trend": percent_change(this_income, last_income) or 0.0,
        "expense_trend": percent_change(this_expense, last_expense) or 0.0,
        "pending_count": len(pending),
        "pending_amount": _sum(pending),
        "monthly": monthly,
        "income_by_category": _category_totals(income),
        "expense_by_category": _category_totals(expense),
        "active_memberships": sum(1 for m in memberships if m.get("status") == "Active"),
        "pending_memberships": sum(1 for m in memberships if m.get("status") == PENDING),
        "transaction_count": len(transactions),
        "savings_rate": _percent(balance, total_income),
    }


def _empty_year() -> Dict[str, Any]:
    return {"income": ZERO, "expenses": ZERO, "net": ZERO, "count": 0}


def year_over_year(
    transactions: Sequence[Mapping[str, Any]],
    player_payments: Sequence[Mapping[str, Any]] = (),
    current_year: Optional[int] = None,
    compare_year: Optional[int] = None,
) -> Dict[str, Any]:
    current_year = current_year or dt.date.today().year

    stats: Dict[int, Dict[str, Any]] = {}
    monthly = [{"month": name, "current": ZERO, "previous": ZERO} for name in MONTH_NAMES]
    dated: List[Tuple[dt.date, Decimal, bool]] = []

    for row in transactions:
        day = to_date(row.get("date"))
        if day is not None:
            stats.setdefault(day.year, _empty_year())

    completed = [row for row in transactions if row.get("status") == COMPLETED]
    income_rows, expense_rows = _split(completed)
    for rows, key in ((income_rows, "income"), (expense_rows, "expenses")):
        for row in rows:
            day = to_date(row.get("date"))
            if day is None:
                continue
            amount = to_amount(row.get("amount"))
            year = stats[day.year]
            year[key] += amount
            year["count"] += 1
            if key == "income":
                dated.append((day, amount, True))

    for payment in player_payments:
        day = to_date(payment.get("payment_date"))
        if day is None:
            continue
        amount = to_amount(payment.get("amount"))
        year = stats.setdefault(day.year, _empty_year())
        year["income"] += amount
        year["count"] += 1
        dated.append((day, amount, True))

    for year in stats.values():
        year["net"] = year["income"] - year["expenses"]

    years = sorted(stats, reverse=True)
    if compare_year is None:
        compare_year = next((year for year in years if year != current_year), None)

    for day, amount, _ in dated:
        if day.year == current_year:
            monthly[day.month - 1]["current"] += amount
        elif compare_year is not None and day.year == compare_year:
            monthly[day.month - 1]["previous"] += amount

    current = stats.get(current_year, _empty_year())
    comparison = stats.get(compare_year, _empty_year()) if compare_year is not None else None

    changes: Dict[str, Optional[float]] = {"income": None, "expenses": None, "net": None}
    if comparison is not None:
        for key in changes:
            changes[key] = percent_change(current[key], comparison[key])

    return {
        "years": years,
        "current_year": current_year,
        "compare_year": compare_year,
        "current": current,
        "comparison": comparison,
        "changes": changes,
        "monthly": monthly,
        "history": [{"year": year, **stats[year]} for year in reversed(years[:5])],
    }


def player_balances(
    players: Sequence[Mapping[str, Any]],
    charges: Sequence[Mapping[str, Any]],
    payments: Sequence[Mapping[str, Any]],
    charge_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Ledger per player: payments minus non-voided charges.

    A negative balance means the player owes the club. Passing
    ``charge_type="match_fee"`` narrows charges to match fees.
    """

    ledger: Dict[str, Dict[str, Any]] = {}

    def entry(player_id: Any, name: str = "Unknown") -> Dict[str, Any]:
        key = str(player_id)
        if key not in ledger:
            ledger[key] = {
                "player_id": key,
                "name": name,
                "charges": ZERO,
                "payments": ZERO,
                "balance": ZERO,
                "matches_charged": 0,
            }
        return ledger[key]

    for player in players:
        entry(player.get("id"), player.get("player_name") or "Unknown")

    for charge in charges:
        if charge.get("voided") or charge.get("player_id") is None:
            continue
        if charge_type and charge.get("charge_type") != charge_type:
            continue
        row = entry(charge.get("player_id"))
        row["charges"] += to_amount(charge.get("amount"))
        if charge.get("charge_type") == "match_fee":
            row["matches_charged"] += 1

    for payment in payments:
        if payment.get("player_id") is None:
            continue
        entry(payment.get("player_id"))["payments"] += to_amount(payment.get("amount"))

    rows = list(ledger.values())
    for row in rows:
        row["balance"] = row["payments"] - row["charges"]

    owing = [row for row in rows if row["balance"] < 0]
    credit = [row for row in rows if row["balance"] > 0]
    return {
        "players": sorted(rows, key=lambda row: (row["balance"], row["name"].lower())),
        "total_owed": sum((-row["balance"] for row in owing), ZERO),
        "total_credit": sum((row["balance"] for row in credit), ZERO),
        "total_collected": sum((row["payments"] for row in rows), ZERO),
        "players_owing": len(owing),
        "players_with_credit": len(credit),
    }


def period_range(period: str, today: Optional[dt.date] = None) -> Tuple[Optional[dt.date], dt.date]:
    today = today or dt.date.today()
    this_month = month_start(today)
    if period == "thisMonth":
        return this_month, month_end(today)
    if period == "last3Months":
        return shift_months(this_month, -2), month_end(today)
    if period == "last6Months":
        return shift_months(this_month, -5), month_end(today)
    if period == "thisYear":
        return dt.date(today.year, 1, 1), dt.date(today.year, 12, 31)
    if period == "all":
        return ALL_TIME_START, today
    raise ValueError(f"Unknown report period '{period}'. Expected one of: {', '.join(PERIODS)}")


def financial_report(
    transactions: Sequence[Mapping[str, Any]],
    charges: Sequence[Mapping[str, Any]],
    payments: Sequence[Mapping[str, Any]],
    players: Sequence[Mapping[str, Any]],
    period: str = "thisYear",
    today: Optional[dt.date] = None,
) -> Dict[str, Any]:
    today = today or dt.date.today()
    start, end = period_range(period, today)

    in_period = [
        t for t in transactions
        if t.get("status") == COMPLETED and _within(to_date(t.get("date")), start, end)
    ]
    income, expense = _split(in_period)
    period_payments = [p for p in payments if _within(to_date(p.get("payment_date")), start, end)]

    payment_total = _sum(period_payments)
    total_income = _sum(income) + payment_total
    total_expenses = _sum(expense)
    net = total_income - total_expenses

    income_by_category = _category_totals(income)
    if payment_total > 0:
        merged = {item["name"]: item["value"] for item in income_by_category}
        merged["Match Fees"] = merged.get("Match Fees", ZERO) + payment_total
        income_by_category = [
            {"name": name, "value": value}
            for name, value in sorted(merged.items(), key=lambda item: item[1], reverse=True)
        ]

    known_players = [p for p in players if p.get("id") is not None]
    known_ids = {str(p.get("id")) for p in known_players}
    ledger = player_balances(
        known_players,
        [c for c in charges if str(c.get("player_id")) in known_ids],
        [p for p in payments if str(p.get("player_id")) in known_ids],
    )
    owing = [row for row in ledger["players"] if row["balance"] < 0]
    credit = sorted(
        (row for row in ledger["players"] if row["balance"] > 0),
        key=lambda row: row["balance"],
        reverse=True,
    )

    total_charged = _sum(c for c in charges if not c.get("voided"))
    total_collected = _sum(payments)
    names = {str(p.get("id")): p.get("player_name") or "Unknown" for p in known_players}
    unverified = [
        {**payment, "player_name": names.get(str(payment.get("player_id")), "Unknown")}
        for payment in payments
        if not payment.get("verified")
    ]

    monthly: Dict[str, Dict[str, Any]] = {}
    this_month = month_start(today)
    for offset in range(5, -1, -1):
        first = shift_months(this_month, -offset)
        monthly[first.strftime("%Y-%m")] = {
            "month": MONTH_NAMES[first.month - 1],
            "year": first.year,
            "income": ZERO,
            "expenses": ZERO,
        }
    for row in in_period:
        bucket = monthly.get(to_date(row.get("date")).strftime("%Y-%m"))
        if bucket is not None:
            bucket["income" if row.get("type") == INCOME else "expenses"] += to_amount(row.get("amount"))
    for payment in payments:
        day = to_date(payment.get("payment_date"))
        bucket = monthly.get(day.strftime("%Y-%m")) if day else None
        if bucket is not None:
            bucket["income"] += to_amount(payment.get("amount"))

    return {
        "period": period,
        "start": start,
        "end": end,
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net": net,
        "margin": _percent(net, total_income),
        "total_owed": ledger["total_owed"],
        "total_collected": total_collected,
        "total_charged": total_charged,
        "collection_rate": _percent(total_collected, total_charged),
        "players_owing": owing,
        "players_with_credit": credit,
        "unverified_payments": unverified,
        "income_by_category": income_by_category,
        "expense_by_category": _category_totals(expense),
        "monthly": list(monthly.values()),
    }


def match_fee_charges(
    match: Mapping[str, Any],
    players: Sequence[Mapping[str, Any]],
    existing_charges: Sequence[Mapping[str, Any]],
    amount: Any,
    today: Optional[dt.date] = None,
) -> List[Dict[str, Any]]:
    """New ``player_charges`` rows for players not yet charged for ``match``."""

    fee = to_amount(amount)
    if fee <= 0:
        raise ValueError("Match fee amount must be greater than zero")

    match_id = match.get("id")
    already = {
        str(c.get("player_id"))
        for c in existing_charges
        if c.get("reference_id") == match_id and c.get("charge_type") == "match_fee" and not c.get("voided")
    }
    match_day = to_date(match.get("match_date"))
    label = match_day.strftime("%d %b %Y") if match_day else "Date TBD"
    charge_day = match_day or today or dt.date.today()

    return [
        {
            "player_id": player.get("id"),
            "charge_type": "match_fee",
            "amount": str(fee),
            "description": f"{match.get('team1_name')} vs {match.get('team2_name')} - {label}",
            "charge_date": charge_day.isoformat(),
            "reference_type": "TournamentMatch",
            "reference_id": match_id,
        }
        for player in players
        if player.get("id") is not None and str(player.get("id")) not in already
    ]


def parse_full_name(full_name: str | None) -> Tuple[str, str]:
    parts = (full_name or "").strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def generate_payment_reference(
    first_name: str | None,
    last_name: str | None,
    phone: str | None,
    payment_type: str,
    on: Optional[dt.date] = None,
) -> str:
    """Bank reference such as ``JD1234REG26112024``.

    Initials, the last four digits of the phone number, a type code and
    the date as ``ddmmyyyy``.
    """

    initials = ((first_name or "X")[:1] + (last_name or "X")[:1]).upper()
    digits = re.sub(r"\D", "", phone or "")
    phone_part = (digits[-4:] if digits else "").rjust(4, "0")
    type_code = PAYMENT_TYPE_CODES.get(payment_type, "OTH")
    day = on or dt.date.today()
    return f"{initials}{phone_part}{type_code}{day.strftime('%d%m%Y')}"


def extract_references(text: str | None) -> List[str]:
    seen: List[str] = []
    for match in REFERENCE_PATTERN.findall(text or ""):
        value = match.upper()
        if value not in seen:
            seen.append(value)
    return seen


def format_currency(value: Any, currency: str = "GBP") -> str:
    amount = to_amount(value).quantize(CENT, rounding=ROUND_HALF_UP)
    code = (currency or "GBP").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    body = f"{abs(amount):,.2f}"
    sign = "-" if amount < 0 else ""
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{code} {body}"
