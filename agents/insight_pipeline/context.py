"""Assemble prompt-ready financial context for a user."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from finance_app.clients.document_store import DESCENDING, SQLiteDocumentStore
from finance_app.services.analytics import (
    Transaction,
    calculate_account_summary,
    calculate_analytics,
    calculate_monthly_metrics,
    format_inr,
    group_recurring_expenses,
    separate_one_time_expenses,
)
from finance_app.services.tax import (
    LIMIT_80C,
    TaxConfig,
    calculate_tax,
    get_default_tax_config,
)

from .models import NO_DATA_EXEMPT_TYPES, InsightType, NoDataError, PipelineContext

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TOP_CATEGORY_LIMIT = 8
TREND_MONTH_LIMIT = 6


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _plain(value: float) -> str:
    """Render a quantity without a trailing ``.0`` for whole numbers."""
    return str(int(value)) if float(value).is_integer() else str(value)


def _pct(part: float, whole: float) -> str:
    return f"{part / whole * 100:.1f}" if whole > 0 else "0"


def _rupees(value: Any) -> str:
    return format_inr(value, decimals=2)


class ContextCollector:
    """Read a user's financial documents and render them as text blocks.

    Reads are issued concurrently and never write. Output is a pure function
    of the stored documents and the injected clock.
    """

    def __init__(self, store: SQLiteDocumentStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def collect(self, user_id: str, insight_type: InsightType) -> PipelineContext:
        """Build the :class:`PipelineContext` for ``insight_type``.

        Raises :class:`NoDataError` when a transaction-based type is requested
        for a user without transactions.
        """
        needs_plan = insight_type is InsightType.PLANNER_RECOMMENDATION
        needs_tax = insight_type is InsightType.TAX_OPTIMIZATION
        (
            txn_docs,
            nwi_doc,
            goal_docs,
            stock_docs,
            fund_docs,
            sip_docs,
            plan_doc,
            tax_doc,
        ) = await asyncio.gather(
            self._store.find("transactions", {"user_id": user_id}, sort=("date", DESCENDING)),
            self._store.find_one("nwi_config", {"user_id": user_id}),
            self._store.find("savings_goals", {"user_id": user_id}),
            self._store.find("stocks", {"user_id": user_id}),
            self._store.find("mutual_funds", {"user_id": user_id}),
            self._store.find("sips", {"user_id": user_id}),
            self._find_one_if(needs_plan, "finance_plans", user_id),
            self._find_one_if(needs_tax, "tax_config", user_id),
        )

        transactions = _load_transactions(txn_docs)
        if not transactions and insight_type not in NO_DATA_EXEMPT_TYPES:
            raise NoDataError(user_id, insight_type)

        financial_context = ""
        current_month_context = ""
        health_context = ""
        if transactions:
            financial_context = build_financial_context(transactions)
            if insight_type in (InsightType.MONTHLY_BUDGET, InsightType.WEEKLY_BUDGET):
                current_month_context = self._current_month_context(transactions)
            health_context = build_health_context(transactions)

        stock_symbols = tuple(
            str(doc["symbol"]) for doc in stock_docs if doc.get("symbol")
        )
        fund_names = tuple(name for name in map(_fund_name, fund_docs) if name)

        tax_context = ""
        if needs_tax:
            config = TaxConfig.from_document(tax_doc) if tax_doc else get_default_tax_config()
            tax_context = build_tax_context(config, transactions)

        return PipelineContext(
            user_id=user_id,
            financial_context=financial_context,
            current_month_context=current_month_context,
            investment_context=build_investment_context(stock_docs, fund_docs, sip_docs),
            nwi_context=build_nwi_context(nwi_doc),
            health_context=health_context,
            goals_context=build_goals_context(goal_docs),
            tax_context=tax_context,
            planner_context=build_planner_context(plan_doc) if needs_plan else "",
            transaction_count=len(transactions),
            stock_symbols=stock_symbols,
            mutual_fund_names=fund_names,
        )

    async def _find_one_if(
        self, wanted: bool, collection: str, user_id: str
    ) -> Optional[Dict[str, Any]]:
        if not wanted:
            return None
        return await self._store.find_one(collection, {"user_id": user_id})

    def _current_month_context(self, transactions: List[Transaction]) -> str:
        today = self._clock()
        metrics = calculate_monthly_metrics(transactions, today.year, today.month)
        return "\n".join(
            [
                f"## Current Month ({metrics.month_label})",
                f"- Opening Balance: {_rupees(metrics.opening_balance)}",
                f"- Income so far: {_rupees(metrics.total_income)}",
                f"- Expenses so far: {_rupees(metrics.total_expenses)}",
                f"- Days elapsed: {metrics.days_in_period}",
                f"- Partial month: {'Yes' if metrics.is_partial_month else 'No'}",
            ]
        )


def _load_transactions(documents: List[Dict[str, Any]]) -> List[Transaction]:
    transactions = []
    for document in documents:
        try:
            transactions.append(Transaction.from_document(document))
        except ValueError as exc:
            logger.warning("Skipping transaction %s: %s", document.get("id"), exc)
    return transactions


def _fund_name(document: Dict[str, Any]) -> str:
    return str(document.get("scheme_name") or document.get("name") or "")


def build_financial_context(transactions: List[Transaction]) -> str:
    analytics = calculate_analytics(transactions)
    account = calculate_account_summary(transactions)
    one_time = separate_one_time_expenses(transactions)

    lines = [
        "## Financial Overview (INR)",
        f"- Total Income: {format_inr(analytics.total_income)}",
        f"- Total Expenses: {format_inr(analytics.total_expenses)}",
        f"- Net Savings: {format_inr(analytics.net_savings)}",
        f"- Savings Rate: {analytics.savings_rate:.1f}%",
        f"- Daily Average Spend: {format_inr(analytics.daily_average_spend)}",
        f"- Recurring Expenses: {format_inr(analytics.recurring_expenses)}",
        f"- Current Balance: {format_inr(account.current_balance)}",
        f"- Opening Balance: {format_inr(account.opening_balance)}",
        "",
        "## Top Expense Categories",
    ]
    for item in analytics.category_breakdown[:TOP_CATEGORY_LIMIT]:
        lines.append(f"- {item.category}: {format_inr(item.amount)} ({item.percentage:.1f}%)")

    if one_time:
        lines.extend(["", "## Large One-Time Expenses"])
        for txn in one_time:
            lines.append(f"- {txn.label}: {format_inr(txn.amount)}")

    lines.extend(["", "## Monthly Trends (recent)"])
    for trend in analytics.monthly_trends[-TREND_MONTH_LIMIT:]:
        lines.append(
            f"- {trend.month_name}: Income {format_inr(trend.income)}, "
            f"Expenses {format_inr(trend.expenses)}, Savings {format_inr(trend.savings)}"
        )
    return "\n".join(lines)


def build_health_context(transactions: List[Transaction]) -> str:
    total_income = sum(txn.amount for txn in transactions if txn.type == "income")
    total_expenses = sum(txn.amount for txn in transactions if txn.type == "expense")
    savings_rate = _pct(total_income - total_expenses, total_income)
    return "\n".join(
        [
            "Financial Health Summary:",
            f"- Savings Rate: {savings_rate}%",
            f"- Total Income: {_rupees(total_income)}",
            f"- Total Expenses: {_rupees(total_expenses)}",
        ]
    )


def build_nwi_context(document: Optional[Dict[str, Any]]) -> str:
    if not document:
        return ""
    lines = ["Needs/Wants/Investments/Savings Split Configuration:"]
    buckets = [
        ("Needs", "needs"),
        ("Wants", "wants"),
        ("Investments", "investments"),
        ("Savings", "savings"),
    ]
    for label, key in buckets:
        bucket = document.get(key)
        if not isinstance(bucket, dict) or not bucket:
            continue
        categories = ", ".join(str(name) for name in bucket.get("categories") or [])
        lines.append(f"- {label} ({_plain(_number(bucket.get('percentage')))}%): {categories}")
    return "\n".join(lines)


def build_goals_context(documents: List[Dict[str, Any]]) -> str:
    if not documents:
        return ""
    lines = ["Savings Goals:"]
    for goal in documents:
        lines.append(
            f"  - {goal.get('name', 'Goal')}: {_rupees(goal.get('current_amount'))} / "
            f"{_rupees(goal.get('target_amount'))} (target: {goal.get('target_date')})"
        )
    return "\n".join(lines)


def build_investment_context(
    stocks: List[Dict[str, Any]],
    funds: List[Dict[str, Any]],
    sips: List[Dict[str, Any]],
) -> str:
    if not (stocks or funds or sips):
        return ""

    def _price(stock: Dict[str, Any]) -> float:
        return _number(stock.get("current_price")) or _number(stock.get("average_cost"))

    stock_invested = sum(
        _number(s.get("shares")) * _number(s.get("average_cost")) for s in stocks
    )
    stock_current = sum(_number(s.get("shares")) * _price(s) for s in stocks)
    fund_invested = sum(_number(f.get("invested_value")) for f in funds)
    fund_current = sum(_number(f.get("current_value")) for f in funds)
    invested = stock_invested + fund_invested
    current = stock_current + fund_current

    lines = [
        "## Investment Portfolio (INR)",
        f"- Total Invested: {format_inr(invested)}",
        f"- Current Value: {format_inr(current)}",
        f"- Total Returns: {format_inr(current - invested)} ({_pct(current - invested, invested)}%)",
    ]

    if sips:
        lines.extend(["", "## Active SIPs"])
        for sip in sips:
            lines.append(
                f"- {sip.get('name', '')} ({sip.get('provider') or 'Unknown'}): "
                f"{format_inr(sip.get('monthly_amount'))}/month [{sip.get('status') or 'active'}]"
            )

    if stocks:
        lines.extend(["", "## Stock Holdings"])
        for stock in stocks:
            shares = _number(stock.get("shares"))
            current_price = _number(stock.get("current_price"))
            line = (
                f"- {stock.get('symbol', '')}: {_plain(shares)} shares @ avg "
                f"{format_inr(stock.get('average_cost'))}"
            )
            if current_price and shares:
                line += f", current {format_inr(current_price * shares)}"
            lines.append(line)

    if funds:
        lines.extend(["", "## Mutual Funds"])
        for fund in funds:
            lines.append(
                f"- {_fund_name(fund)}: Invested {format_inr(fund.get('invested_value'))}, "
                f"Current {format_inr(fund.get('current_value'))}, "
                f"Returns {format_inr(fund.get('returns'))}"
            )
    return "\n".join(lines)


def build_planner_context(document: Optional[Dict[str, Any]]) -> str:
    if not document:
        return ""
    income = _number(document.get("monthly_income"))
    needs = _number(document.get("needs"))
    wants = _number(document.get("wants"))
    savings = _number(document.get("savings"))
    investments: Dict[str, Any] = document.get("investments") or {}
    total_invested = sum(_number(value) for value in investments.values())

    lines = [
        "## Financial Plan",
        f"- Monthly Income: {_rupees(income)}",
        f"- Needs: {_rupees(needs)} ({_pct(needs, income)}%)",
        f"- Wants: {_rupees(wants)} ({_pct(wants, income)}%)",
        f"- Savings: {_rupees(savings)} ({_pct(savings, income)}%)",
        f"- Investments: {_rupees(total_invested)} ({_pct(total_invested, income)}%)",
    ]

    breakdown = [
        f"  - {name}: {_rupees(value)}"
        for name, value in investments.items()
        if _number(value) > 0
    ]
    if breakdown:
        lines.append("- Investment Breakdown:")
        lines.extend(breakdown)

    unallocated = income - (needs + wants + savings + total_invested)
    if unallocated > 0:
        lines.append(f"- Unallocated: {_rupees(unallocated)} ({_pct(unallocated, income)}%)")
    elif unallocated < 0:
        lines.append(f"- Over-allocated by: {_rupees(abs(unallocated))}")

    goal_allocations: Dict[str, Any] = document.get("goal_allocations") or {}
    goal_lines = [
        f"  - {name}: {_rupees(value)}/mo"
        for name, value in goal_allocations.items()
        if _number(value) > 0
    ]
    if goal_lines:
        lines.append("- Goal Allocations from Savings:")
        lines.extend(goal_lines)
    return "\n".join(lines)


def build_tax_context(config: TaxConfig, transactions: List[Transaction]) -> str:
    result = calculate_tax(config)
    total_80c = config.deductions_80c.total
    total_80d = result.old.total_80d

    lines = [
        "## Tax Analysis (FY 2025-26)",
        "",
        "### Income",
        f"- Gross Annual Income: {_rupees(config.gross_annual_income)}",
    ]
    if config.other_income.total > 0:
        lines.append(f"- Other Income: {_rupees(config.other_income.total)}")

    lines.extend(
        [
            "",
            "### Deductions (Old Regime)",
            f"- 80C ({_rupees(total_80c)} of {_rupees(LIMIT_80C)} limit):",
        ]
    )
    lines.extend(
        f"  - {label}: {_rupees(amount)}"
        for label, amount in config.deductions_80c.labelled()
        if amount > 0
    )

    senior = " (Senior Citizen)" if config.deductions_80d.parents_are_senior else ""
    lines.extend(
        [
            f"- 80D (Health Insurance): {_rupees(total_80d)}",
            f"  - Self: {_rupees(config.deductions_80d.self_health_insurance)}",
            f"  - Parents: {_rupees(config.deductions_80d.parents_health_insurance)}{senior}",
        ]
    )
    optional = [
        ("80TTA (Savings Interest)", config.section_80tta),
        ("80E (Education Loan)", config.section_80e),
        ("80CCD(1B) (NPS)", config.section_80ccd1b),
        ("Sec 24 (Home Loan Interest)", config.section_24_home_loan),
    ]
    lines.extend(f"- {label}: {_rupees(amount)}" for label, amount in optional if amount > 0)

    if config.hra.rent_paid > 0:
        lines.extend(
            [
                "",
                "### HRA Details",
                f"- Basic Salary: {_rupees(config.hra.basic_salary)}",
                f"- HRA Received: {_rupees(config.hra.hra_received)}",
                f"- Rent Paid: {_rupees(config.hra.rent_paid)}",
                f"- Metro City: {'Yes' if config.hra.is_metro_city else 'No'}",
                f"- HRA Exemption: {_rupees(result.old.hra_exemption)}",
            ]
        )

    lines.extend(
        [
            "",
            "### Regime Comparison",
            f"- Old Regime Tax: {_rupees(result.old.total_tax)} "
            f"(Effective Rate: {result.old.effective_rate:.1f}%)",
            f"- New Regime Tax: {_rupees(result.new.total_tax)} "
            f"(Effective Rate: {result.new.effective_rate:.1f}%)",
            f"- Recommended Regime: {result.recommended.title()} Regime",
            f"- Tax Saved by Choosing Better Regime: {_rupees(result.savings)}",
            "",
            "### Utilization Summary",
            f"- 80C: {_rupees(min(total_80c, LIMIT_80C))} of {_rupees(LIMIT_80C)} used "
            f"({_rupees(max(0, LIMIT_80C - total_80c))} remaining)",
            f"- 80D: {_rupees(total_80d)} used",
        ]
    )

    subscriptions = group_recurring_expenses(transactions)
    if subscriptions:
        lines.extend(["", "### Recurring Subscriptions & Services"])
        for group in subscriptions:
            lines.append(
                f"- {group.name}: ~{format_inr(group.average)}/txn "
                f"({group.count} transactions, total {_rupees(group.total)})"
            )
    return "\n".join(lines)


__all__ = [
    "Clock",
    "ContextCollector",
    "build_financial_context",
    "build_investment_context",
    "build_planner_context",
    "build_tax_context",
    "utc_now",
]
