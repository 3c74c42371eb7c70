"""
Unit tests for CancellationScorer.
"""

import pytest
from decimal import Decimal

from billcycle.models.transaction import TransactionType
from billcycle.services.recurring.cancellation_service import CancellationScorer
from billcycle.services.recurring.config import CancellationConfig
from billcycle.services.recurring.price_history_service import PriceHistoryTracker
from billcycle.utils.temporal_utils import add_months
from tests.fixtures.recurring_fixtures import utc, create_template, create_transaction

NOW = utc(2026, 1, 15)


@pytest.fixture
def scorer():
    return CancellationScorer()


def with_price_increase(template, old="10", new="12"):
    tracker = PriceHistoryTracker()
    template = tracker.record_price(template, Decimal(old), utc(2025, 6, 1))
    return tracker.record_price(template, Decimal(new), utc(2025, 12, 1))


def with_old_usage(template, when=utc(2025, 6, 1)):
    """Give the template a materialized transaction at `when`."""
    txn = create_transaction(template.name, template.amount, when, parent_template_id=template.template_id)
    template = template.model_copy(update={'generated_transaction_ids': [txn.transaction_id]})
    return template, txn


def test_high_cost_alone_is_not_suggested(scorer):
    # 100 - 20 = 80
    assert scorer.score([create_template()], [], NOW) == []


def test_high_cost_and_price_increase(scorer):
    template = with_price_increase(create_template(name="Gym", amount=Decimal("50")), "40", "50")

    suggestions = scorer.score([template], [], NOW)

    assert len(suggestions) == 1
    suggestion = suggestions[0]
    assert suggestion.score == 65
    assert suggestion.reasons == [
        "High cost: 100% of recurring spend",
        "Price increased 25% since first recorded",
    ]
    assert suggestion.monthly_cost == Decimal("50.00")
    assert suggestion.cost_share == pytest.approx(100.0)


def test_variable_amount_penalty(scorer):
    template = with_price_increase(create_template(is_variable_amount=True))

    assert scorer.score([template], [], NOW)[0].score == 60


def test_inactivity_penalty(scorer):
    template, txn = with_old_usage(create_template())

    suggestion = scorer.score([template], [txn], NOW)[0]

    assert suggestion.score == 55
    assert "No transactions in last 3 months" in suggestion.reasons


def test_inactivity_uses_generated_ids_for_unlinked_records(scorer):
    template, txn = with_old_usage(create_template())
    txn = txn.model_copy(update={'parent_template_id': None})

    assert scorer.score([template], [txn], NOW)[0].score == 55


def test_recent_usage_at_cutoff_counts(scorer):
    template, old = with_old_usage(create_template())
    recent = create_transaction(
        template.name, template.amount, add_months(NOW, -3), parent_template_id=template.template_id
    )

    assert scorer.score([template], [old, recent], NOW) == []


def test_never_materialized_is_not_inactive(scorer):
    template = with_price_increase(create_template())

    suggestion = scorer.score([template], [], NOW)[0]

    assert not any(reason.startswith("No transactions") for reason in suggestion.reasons)


def test_cost_share_bands():
    scorer = CancellationScorer(CancellationConfig(suggestion_threshold=101))
    templates = [
        create_template(name="Rent", amount=Decimal("60")),
        create_template(name="Phone", amount=Decimal("20")),
        create_template(name="Music", amount=Decimal("10")),
        create_template(name="News", amount=Decimal("10")),
    ]

    suggestions = scorer.score(templates, [], NOW)

    # Phone at 20% takes the moderate penalty but has no reason to report
    assert [(s.name, s.score) for s in suggestions] == [("Rent", 80)]


def test_no_reason_means_no_suggestion():
    scorer = CancellationScorer(CancellationConfig(suggestion_threshold=101))
    templates = [create_template(name=name, amount=Decimal("25")) for name in ("A", "B", "C", "D")]

    assert scorer.score(templates, [], NOW) == []


def test_suggestions_ordered_by_score_then_name(scorer):
    names = ["Gamma", "Alpha", "Beta", "Delta"]
    templates, transactions = [], []
    for name in names:
        template, txn = with_old_usage(create_template(name=name, amount=Decimal("25")))
        if name == "Delta":
            template = template.model_copy(update={'generated_transaction_ids': []})
            txn = None
        if name == "Beta":
            template = with_price_increase(template)
        templates.append(template)
        if txn is not None:
            transactions.append(txn)

    suggestions = scorer.score(templates, transactions, NOW)

    # 25% share is moderate: Beta 100-10-25-15, Alpha and Gamma 100-10-25
    assert [(s.name, s.score) for s in suggestions] == [("Beta", 50), ("Alpha", 65), ("Gamma", 65)]


def test_only_active_expense_templates_are_scored(scorer):
    paused = with_price_increase(create_template(name="Paused", is_active=False))
    income = with_price_increase(create_template(name="Salary", transaction_type=TransactionType.INCOME))

    assert scorer.score([paused, income], [], NOW) == []


def test_suggestion_invariants(scorer):
    templates = []
    transactions = []
    for i in range(6):
        template, txn = with_old_usage(create_template(name=f"Sub {i}", amount=Decimal(10 + i * 7)))
        if i % 2:
            template = with_price_increase(template)
        templates.append(template)
        transactions.append(txn)

    for suggestion in scorer.score(templates, transactions, NOW):
        assert suggestion.score < 70
        assert suggestion.reasons
