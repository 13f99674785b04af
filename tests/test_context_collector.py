try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from agents.insight_pipeline.context import (
    ContextCollector,
    build_nwi_context,
    build_planner_context,
)
from agents.insight_pipeline.models import NoDataError
from finance_app.schemas import InsightType

pytestmark = pytest.mark.anyio("asyncio")

USER = "user-1"


async def _seed_transactions(store, user_id: str = USER) -> None:
    await store.insert_many(
        "transactions",
        [
            {
                "user_id": user_id,
                "txn_id": "t1",
                "date": "2025-03-01T09:00:00Z",
                "amount": 100000,
                "type": "income",
                "category": "Salary",
                "balance": 100000,
            },
            {
                "user_id": user_id,
                "txn_id": "t2",
                "date": "2025-03-05T09:00:00Z",
                "amount": 2000,
                "type": "expense",
                "category": "Food",
                "balance": 98000,
            },
            {
                "user_id": user_id,
                "txn_id": "t3",
                "date": "2025-02-10T08:00:00Z",
                "amount": 649,
                "type": "expense",
                "category": "Entertainment",
                "merchant": "Netflix",
                "recurring": True,
            },
        ],
    )


async def _seed_portfolio(store) -> None:
    await store.insert_one(
        "stocks",
        {
            "user_id": USER,
            "symbol": "INFY",
            "shares": 10,
            "average_cost": 1500,
            "current_price": 1800,
        },
    )
    await store.insert_one(
        "mutual_funds",
        {
            "user_id": USER,
            "scheme_name": "Parag Parikh Flexi Cap",
            "invested_value": 50000,
            "current_value": 60000,
            "returns": 10000,
        },
    )


async def test_transaction_types_require_transactions(store, clock):
    collector = ContextCollector(store, clock=clock)

    with pytest.raises(NoDataError) as excinfo:
        await collector.collect(USER, InsightType.SPENDING_ANALYSIS)

    assert "Sync transactions" in str(excinfo.value)


async def test_other_users_transactions_are_not_visible(store, clock):
    await _seed_transactions(store, user_id="someone-else")
    collector = ContextCollector(store, clock=clock)

    with pytest.raises(NoDataError):
        await collector.collect(USER, InsightType.MONTHLY_BUDGET)


async def test_investment_insights_work_without_transactions(store, clock):
    await _seed_portfolio(store)
    collector = ContextCollector(store, clock=clock)

    context = await collector.collect(USER, InsightType.INVESTMENT_INSIGHTS)

    assert context.transaction_count == 0
    assert context.financial_context == ""
    assert context.stock_symbols == ("INFY",)
    assert context.mutual_fund_names == ("Parag Parikh Flexi Cap",)
    assert "- Total Invested: Rs.65,000" in context.investment_context
    assert "- Current Value: Rs.78,000" in context.investment_context
    assert "- INFY: 10 shares @ avg Rs.1,500, current Rs.18,000" in context.investment_context


async def test_spending_context_summarizes_transactions(store, clock):
    await _seed_transactions(store)
    collector = ContextCollector(store, clock=clock)

    context = await collector.collect(USER, InsightType.SPENDING_ANALYSIS)

    assert context.transaction_count == 3
    assert "- Total Income: Rs.1,00,000" in context.financial_context
    assert "- Total Expenses: Rs.2,649" in context.financial_context
    assert "Financial Health Summary:" in context.health_context
    assert context.current_month_context == ""
    assert context.tax_context == ""


async def test_monthly_budget_includes_current_month_block(store, clock):
    await _seed_transactions(store)
    collector = ContextCollector(store, clock=clock)

    context = await collector.collect(USER, InsightType.MONTHLY_BUDGET)

    assert context.current_month_context.startswith("## Current Month (March 2025)")
    assert "- Income so far: Rs.1,00,000" in context.current_month_context
    assert "- Expenses so far: Rs.2,000" in context.current_month_context
    assert "- Days elapsed: 5" in context.current_month_context


async def test_tax_context_uses_defaults_and_lists_subscriptions(store, clock):
    await _seed_transactions(store)
    collector = ContextCollector(store, clock=clock)

    context = await collector.collect(USER, InsightType.TAX_OPTIMIZATION)

    assert context.tax_context.startswith("## Tax Analysis (FY 2025-26)")
    assert "- Recommended Regime: New Regime" in context.tax_context
    assert "- Netflix: ~Rs.649/txn (1 transactions, total Rs.649)" in context.tax_context


async def test_planner_context_reads_saved_plan(store, clock):
    await store.insert_one(
        "finance_plans",
        {
            "user_id": USER,
            "monthly_income": 100000,
            "needs": 50000,
            "wants": 20000,
            "savings": 10000,
            "investments": {"Index SIP": 10000},
        },
    )
    collector = ContextCollector(store, clock=clock)

    context = await collector.collect(USER, InsightType.PLANNER_RECOMMENDATION)

    assert "- Needs: Rs.50,000 (50.0%)" in context.planner_context
    assert "  - Index SIP: Rs.10,000" in context.planner_context
    assert "- Unallocated: Rs.10,000 (10.0%)" in context.planner_context


async def test_invalid_transactions_are_skipped(store, clock):
    await _seed_transactions(store)
    await store.insert_one(
        "transactions", {"user_id": USER, "txn_id": "bad", "date": "not-a-date", "amount": 1}
    )
    collector = ContextCollector(store, clock=clock)

    context = await collector.collect(USER, InsightType.SPENDING_ANALYSIS)

    assert context.transaction_count == 3


def test_planner_context_reports_over_allocation():
    text = build_planner_context({"monthly_income": 1000, "needs": 900, "wants": 300})

    assert "- Over-allocated by: Rs.200" in text


def test_nwi_context_skips_malformed_buckets():
    context = build_nwi_context(
        {"needs": 50, "wants": {"percentage": 30, "categories": ["Dining", 7]}}
    )

    assert context == (
        "Needs/Wants/Investments/Savings Split Configuration:\n"
        "- Wants (30%): Dining, 7"
    )
