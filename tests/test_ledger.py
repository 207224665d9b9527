"""Tests for the buyer-credit ledger aggregation."""

from __future__ import annotations

import random
from datetime import UTC, datetime
from decimal import Decimal

from conftest import make_credit, make_payment, make_sale
from parts_ledger import ledger

NOW = datetime(2024, 6, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Outstanding credit
# ---------------------------------------------------------------------------


def test_split_sale_leaves_credit_portion_outstanding():
    """A 300 sale paid 200 cash and 100 credit leaves 100 owed."""

    sales = [make_sale("sale_1", "Karim Motors", cash="200", credit="100")]

    balances = ledger.outstanding_credit(sales, [], [])

    assert balances == {"Karim Motors": Decimal("100.00")}


def test_standalone_credit_less_payment():
    credits = [make_credit("credit_1", "Shohag", "20000")]
    payments = [make_payment("payment_1", "Shohag", "5000")]

    balances = ledger.outstanding_credit([], credits, payments)

    assert balances["Shohag"] == Decimal("15000.00")


def test_cash_only_sales_do_not_create_balances():
    sales = [make_sale("sale_1", "Walk-in", cash="500")]

    assert ledger.outstanding_credit(sales, [], []) == {}
    assert ledger.buyers_with_outstanding_credit(sales, [], []) == []


def test_overpayment_is_clamped_at_zero_and_not_carried_forward():
    """An excess payment is absorbed; later credit starts from zero."""

    credits = [make_credit("credit_1", "Rahim", "100")]
    sales = [make_sale("sale_1", "Rahim", credit="40")]
    payments = [make_payment("payment_1", "Rahim", "250")]

    balances = ledger.outstanding_credit(sales, credits, payments)

    assert balances["Rahim"] == Decimal("0.00")


def test_payment_only_buyer_has_zero_balance():
    payments = [make_payment("payment_1", "Stranger", "50")]

    assert ledger.outstanding_credit([], [], payments) == {"Stranger": Decimal("0.00")}


def test_balances_are_never_negative_for_random_ledgers():
    rng = random.Random(20240601)
    names = ["Karim", "Rahim", "Shohag"]
    for _ in range(25):
        sales = [
            make_sale(f"sale_{i}", rng.choice(names), credit=str(rng.randint(0, 500)))
            for i in range(rng.randint(0, 6))
        ]
        credits = [
            make_credit(f"credit_{i}", rng.choice(names), str(rng.randint(1, 500)))
            for i in range(rng.randint(0, 4))
        ]
        payments = [
            make_payment(f"payment_{i}", rng.choice(names), str(rng.randint(1, 900)))
            for i in range(rng.randint(0, 6))
        ]

        balances = ledger.outstanding_credit(sales, credits, payments)

        assert all(amount >= 0 for amount in balances.values())


def test_buyers_with_outstanding_credit_is_sorted_and_positive_only():
    sales = [
        make_sale("sale_1", "Zaman Traders", credit="300"),
        make_sale("sale_2", "Alam Auto", credit="150.50"),
    ]
    payments = [make_payment("payment_1", "Zaman Traders", "300")]

    result = ledger.buyers_with_outstanding_credit(sales, [], payments)

    assert result == [ledger.BuyerBalance("Alam Auto", Decimal("150.50"))]


def test_all_buyers_is_sorted_and_independent_of_input_order():
    sales = [make_sale("sale_1", "Karim"), make_sale("sale_2", "Alam")]
    credits = [make_credit("credit_1", "Shohag", "10")]
    payments = [make_payment("payment_1", "Alam", "5")]

    forward = ledger.all_buyers(sales, credits, payments)
    backward = ledger.all_buyers(list(reversed(sales)), credits, list(reversed(payments)))

    assert forward == ["Alam", "Karim", "Shohag"]
    assert backward == forward


# ---------------------------------------------------------------------------
# Consistency report
# ---------------------------------------------------------------------------


def test_consistency_report_flags_case_variations_of_a_buyer():
    sales = [make_sale("sale_1", "Shohag", credit="100")]
    credits = [make_credit("credit_1", "shohag", "50")]

    report = ledger.consistency_report(sales, credits, [], now=NOW)

    assert report.buyer_mismatches == ('Potential name variations for "shohag": Shohag, shohag',)
    assert "1 potential buyer name variation(s) detected" in report.warnings
    assert report.is_consistent


def test_consistency_report_flags_payment_exceeding_running_balance():
    credits = [make_credit("credit_1", "Rahim", "100")]
    payments = [make_payment("payment_1", "Rahim", "150")]

    report = ledger.consistency_report([], credits, payments, now=NOW)

    assert report.negative_credits == ("Rahim: Payment of ৳150 exceeds credit balance of ৳100",)
    assert report.errors == ("1 payment(s) exceed available credit",)
    assert not report.is_consistent


def test_consistency_report_flags_duplicate_ids_across_collections():
    sales = [make_sale("dup_1", "Karim", credit="10")]
    credits = [make_credit("dup_1", "Karim", "10")]
    payments = [make_payment("dup_1", "Karim", "5")]

    report = ledger.consistency_report(sales, credits, payments, now=NOW)

    assert report.duplicate_transactions == ("Duplicate transaction ID: dup_1",)
    assert report.errors == ("1 duplicate transaction ID(s) found",)
    assert not report.is_consistent


def test_consistency_report_warns_on_orphaned_and_future_records():
    sales = [make_sale("sale_1", "Karim", cash="100", date="2024-07-04T09:00:00.000Z")]
    payments = [make_payment("payment_1", "Nobody", "75")]

    report = ledger.consistency_report(sales, [], payments, now=NOW)

    assert report.warnings == (
        "Payment from Nobody (৳75) has no corresponding credit record",
        "Future-dated transaction: sale_1 dated 04/07/2024",
    )
    # A payment with no credit behind it also drives the balance below zero.
    assert report.negative_credits == ("Nobody: Payment of ৳75 exceeds credit balance of ৳0",)
    assert report.errors == ("1 payment(s) exceed available credit",)
    assert not report.is_consistent


def test_future_dated_record_alone_keeps_ledger_consistent():
    sales = [make_sale("sale_1", "Karim", cash="100", date="2024-07-04T09:00:00.000Z")]

    report = ledger.consistency_report(sales, [], [], now=NOW)

    assert report.warnings == ("Future-dated transaction: sale_1 dated 04/07/2024",)
    assert report.errors == ()
    assert report.is_consistent


def test_consistency_report_accepts_a_naive_reference_time():
    sales = [make_sale("sale_1", "Karim", cash="100", date="2024-07-04T09:00:00.000Z")]

    report = ledger.consistency_report(sales, [], [], now=datetime(2024, 6, 1))

    assert report.warnings == ("Future-dated transaction: sale_1 dated 04/07/2024",)


def test_consistency_report_on_a_clean_ledger():
    sales = [make_sale("sale_1", "Karim", credit="200")]
    payments = [make_payment("payment_1", "Karim", "200")]

    report = ledger.consistency_report(sales, [], payments, now=NOW)

    assert report == ledger.ConsistencyReport(
        is_consistent=True,
        warnings=(),
        errors=(),
        buyer_mismatches=(),
        negative_credits=(),
        duplicate_transactions=(),
    )


# ---------------------------------------------------------------------------
# Data summary
# ---------------------------------------------------------------------------


def test_data_summary_totals_are_not_clamped():
    sales = [make_sale("sale_1", "Karim", credit="100"), make_sale("sale_2", "Alam", cash="40")]
    credits = [make_credit("credit_1", "Shohag", "50.25")]
    payments = [make_payment("payment_1", "Karim", "300")]

    summary = ledger.data_summary(sales, credits, payments)

    assert summary == ledger.DataSummary(
        total_sales_credit=Decimal("100.00"),
        total_standalone_credit=Decimal("50.25"),
        total_payments=Decimal("300.00"),
        net_outstanding=Decimal("-149.75"),
        unique_buyers=3,
        sale_count=2,
        credit_count=1,
        payment_count=1,
    )
