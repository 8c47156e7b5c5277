import datetime as dt
from decimal import Decimal

import pytest

from club_core.finance import (
    extract_references,
    finance_overview,
    financial_report,
    format_currency,
    generate_payment_reference,
    match_fee_charges,
    parse_full_name,
    percent_change,
    period_range,
    player_balances,
    shift_months,
    year_over_year,
)


TODAY = dt.date(2025, 6, 15)

TRANSACTIONS = [
    {"type": "Income", "status": "Completed", "amount": 100, "date": "2025-06-02", "category_name": "Subscriptions"},
    {"type": "Income", "status": "Completed", "amount": "50.00", "date": "2025-05-10", "category_name": "Bar"},
    {"type": "Expense", "status": "Completed", "amount": 40, "date": "2025-06-05", "category_name": "Equipment"},
    {"type": "Expense", "status": "Completed", "amount": 20, "date": "2025-05-20", "category_name": "Equipment"},
    {"type": "Income", "status": "Pending", "amount": 30, "date": "2025-06-10", "category_name": "Bar"},
]

PLAYERS = [{"id": "p1", "player_name": "Ann Able"}, {"id": "p2", "player_name": "Ben Baker"}]

CHARGES = [
    {"player_id": "p1", "charge_type": "match_fee", "amount": 10},
    {"player_id": "p1", "charge_type": "match_fee", "amount": 10, "voided": True},
    {"player_id": "p2", "charge_type": "match_fee", "amount": 10},
    {"player_id": "p2", "charge_type": "kit", "amount": 25},
]

PAYMENTS = [
    {"player_id": "p1", "amount": 15, "payment_date": "2025-06-01", "verified": True},
    {"player_id": "p3", "amount": 5, "payment_date": "2025-05-01"},
]


def test_shift_months_crosses_years() -> None:
    assert shift_months(dt.date(2025, 1, 20), -1) == dt.date(2024, 12, 1)
    assert shift_months(dt.date(2025, 11, 3), 3) == dt.date(2026, 2, 1)


def test_percent_change() -> None:
    assert percent_change(Decimal("150"), Decimal("100")) == 50.0
    assert percent_change(Decimal("10"), Decimal("0")) is None


def test_finance_overview() -> None:
    overview = finance_overview(TRANSACTIONS, [{"status": "Active"}, {"status": "Pending"}], today=TODAY)

    assert overview["total_income"] == Decimal("150")
    assert overview["total_expenses"] == Decimal("60")
    assert overview["balance"] == Decimal("90")
    assert overview["this_month_income"] == Decimal("100")
    assert overview["last_month_income"] == Decimal("50")
    assert overview["income_trend"] == 100.0
    assert overview["expense_trend"] == 100.0
    assert overview["pending_count"] == 1
    assert overview["pending_amount"] == Decimal("30")
    assert overview["savings_rate"] == 60.0
    assert overview["transaction_count"] == 5
    assert (overview["active_memberships"], overview["pending_memberships"]) == (1, 1)

    monthly = overview["monthly"]
    assert [(m["month"], m["year"]) for m in monthly][0] == ("Jan", 2025)
    assert monthly[-1] == {"month": "Jun", "year": 2025, "income": Decimal("100"), "expenses": Decimal("40")}

    assert [c["name"] for c in overview["income_by_category"]] == ["Subscriptions", "Bar"]
    assert overview["expense_by_category"] == [{"name": "Equipment", "value": Decimal("60")}]


def test_finance_overview_empty() -> None:
    overview = finance_overview([], today=TODAY)
    assert overview["balance"] == 0
    assert overview["income_trend"] == 0.0
    assert overview["savings_rate"] == 0.0


def test_year_over_year() -> None:
    transactions = [
        {"type": "Income", "status": "Completed", "amount": 200, "date": "2024-03-01"},
        {"type": "Expense", "status": "Completed", "amount": 50, "date": "2024-04-01"},
        {"type": "Income", "status": "Completed", "amount": 300, "date": "2025-03-02"},
        {"type": "Expense", "status": "Completed", "amount": 100, "date": "2025-04-01"},
        {"type": "Income", "status": "Pending", "amount": 999, "date": "2025-04-01"},
    ]
    payments = [{"amount": 20, "payment_date": "2025-03-15"}]

    result = year_over_year(transactions, payments, current_year=2025)

    assert result["years"] == [2025, 2024]
    assert result["compare_year"] == 2024
    assert result["current"] == {"income": Decimal("320"), "expenses": Decimal("100"), "net": Decimal("220"), "count": 3}
    assert result["comparison"]["net"] == Decimal("150")
    assert result["changes"] == {"income": 60.0, "expenses": 100.0, "net": 46.7}
    assert result["monthly"][2] == {"month": "Mar", "current": Decimal("320"), "previous": Decimal("200")}
    assert [row["year"] for row in result["history"]] == [2024, 2025]


def test_year_over_year_ignores_untyped_rows() -> None:
    transactions = [
        {"type": "Income", "status": "Completed", "amount": 80, "date": "2025-02-01"},
        {"type": "Expense", "status": "Completed", "amount": 30, "date": "2025-02-03"},
        {"type": "Transfer", "status": "Completed", "amount": 500, "date": "2025-02-04"},
        {"status": "Completed", "amount": 70, "date": "2025-02-05"},
    ]

    result = year_over_year(transactions, current_year=2025)

    assert result["current"] == {"income": Decimal("80"), "expenses": Decimal("30"), "net": Decimal("50"), "count": 2}


def test_year_over_year_without_history() -> None:
    result = year_over_year([], current_year=2025)
    assert result["compare_year"] is None
    assert result["comparison"] is None
    assert result["changes"]["income"] is None


def test_player_balances() -> None:
    ledger = player_balances(PLAYERS, CHARGES, PAYMENTS)

    rows = {row["player_id"]: row for row in ledger["players"]}
    assert rows["p1"]["balance"] == Decimal("5")
    assert rows["p2"]["balance"] == Decimal("-35")
    assert rows["p2"]["matches_charged"] == 1
    assert rows["p3"]["name"] == "Unknown"
    assert ledger["players"][0]["player_id"] == "p2"
    assert ledger["total_owed"] == Decimal("35")
    assert ledger["total_credit"] == Decimal("10")
    assert ledger["total_collected"] == Decimal("20")
    assert (ledger["players_owing"], ledger["players_with_credit"]) == (1, 2)


def test_player_balances_for_match_fees_only() -> None:
    ledger = player_balances(PLAYERS, CHARGES, [], charge_type="match_fee")
    rows = {row["player_id"]: row for row in ledger["players"]}
    assert rows["p2"]["charges"] == Decimal("10")


def test_period_range() -> None:
    assert period_range("thisMonth", TODAY) == (dt.date(2025, 6, 1), dt.date(2025, 6, 30))
    assert period_range("last3Months", TODAY) == (dt.date(2025, 4, 1), dt.date(2025, 6, 30))
    assert period_range("thisYear", TODAY) == (dt.date(2025, 1, 1), dt.date(2025, 12, 31))
    assert period_range("all", TODAY) == (dt.date(2020, 1, 1), TODAY)
    with pytest.raises(ValueError, match="Unknown report period"):
        period_range("fortnight", TODAY)


def test_financial_report() -> None:
    report = financial_report(TRANSACTIONS, CHARGES, PAYMENTS, PLAYERS, period="thisYear", today=TODAY)

    assert report["total_income"] == Decimal("170")
    assert report["total_expenses"] == Decimal("60")
    assert report["net"] == Decimal("110")
    assert report["margin"] == 64.7
    assert [c["name"] for c in report["income_by_category"]] == ["Subscriptions", "Bar", "Match Fees"]
    assert report["total_owed"] == Decimal("35")
    assert report["total_charged"] == Decimal("45")
    assert report["collection_rate"] == 44.4
    assert [row["player_id"] for row in report["players_owing"]] == ["p2"]
    assert [p["player_name"] for p in report["unverified_payments"]] == ["Unknown"]
    assert report["monthly"][-1]["income"] == Decimal("115")


def test_match_fee_charges_skip_already_charged() -> None:
    match = {"id": "m1", "team1_name": "Firsts", "team2_name": "Visitors", "match_date": "2025-06-14"}
    existing = [{"player_id": "p1", "reference_id": "m1", "charge_type": "match_fee"}]

    charges = match_fee_charges(match, PLAYERS + [{"player_name": "No Id"}], existing, "12.50")

    assert charges == [
        {
            "player_id": "p2",
            "charge_type": "match_fee",
            "amount": "12.50",
            "description": "Firsts vs Visitors - 14 Jun 2025",
            "charge_date": "2025-06-14",
            "reference_type": "TournamentMatch",
            "reference_id": "m1",
        }
    ]


def test_match_fee_charges_require_positive_amount() -> None:
    with pytest.raises(ValueError):
        match_fee_charges({"id": "m1"}, PLAYERS, [], 0)


def test_parse_full_name() -> None:
    assert parse_full_name("  Mary Jane Watson ") == ("Mary", "Jane Watson")
    assert parse_full_name(None) == ("", "")


def test_generate_payment_reference() -> None:
    on = dt.date(2024, 11, 26)
    assert generate_payment_reference("John", "Doe", "+44 7700 901234", "registration", on=on) == "JD1234REG26112024"
    assert generate_payment_reference(None, None, None, "match_fee", on=on) == "XX0000MF26112024"
    assert generate_payment_reference("ann", "lee", "12", "raffle", on=on) == "AL0012OTH26112024"


def test_extract_references() -> None:
    text = "Paid JD1234REG26112024 and jd1234reg26112024, also AB9999MF01012025."
    assert extract_references(text) == ["JD1234REG26112024", "AB9999MF01012025"]
    assert extract_references(None) == []


def test_format_currency() -> None:
    assert format_currency(1234.5) == "£1,234.50"
    assert format_currency("-10", "USD") == "-$10.00"
    assert format_currency(5, "nzd") == "NZD 5.00"
