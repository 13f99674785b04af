"""Aggregations over a user's transaction history.

All figures are computed from completed transactions only. Amounts are
always positive in storage; ``type`` decides whether a transaction adds to
income or expenses.
"""

from __future__ import annotations

import calendar
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

ONE_TIME_EXPENSE_THRESHOLD = 50_000

_INFLOW_TYPES = frozenset({"income", "refund"})
_OUTFLOW_TYPES = frozenset({"expense", "investment"})


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported transaction date: {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def format_inr(amount: Any, decimals: int = 0) -> str:
    """Render an amount as rupees with Indian digit grouping.

    >>> format_inr(150000)
    'Rs.1,50,000'
    >>> format_inr(1234.5, decimals=2)
    'Rs.1,234.5'
    """
    rounded = round(_to_float(amount), decimals)
    negative = rounded < 0
    whole, _, fraction = f"{abs(rounded):.{decimals}f}".partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups: List[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join([*groups, tail])
    fraction = fraction.rstrip("0")
    text = f"{whole}.{fraction}" if fraction else whole
    return f"{'-' if negative else ''}Rs.{text}"


def is_completed(status: Optional[str]) -> bool:
    return not status or status.lower() == "completed"


@dataclass(slots=True)
class Transaction:
    """A single ledger row as stored in the ``transactions`` collection."""

    id: str
    date: datetime
    amount: float
    type: str = "expense"
    category: str = "Uncategorized"
    description: str = ""
    merchant: str = ""
    payment_method: str = "Other"
    account: str = ""
    status: str = "completed"
    tags: List[str] = field(default_factory=list)
    recurring: bool = False
    balance: Optional[float] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Transaction":
        balance = document.get("balance")
        return cls(
            id=str(document.get("txn_id") or document.get("id") or ""),
            date=_parse_datetime(document.get("date")),
            amount=_to_float(document.get("amount")),
            type=document.get("type") or "expense",
            category=document.get("category") or "Uncategorized",
            description=document.get("description") or "",
            merchant=document.get("merchant") or "",
            payment_method=document.get("payment_method") or "Other",
            account=document.get("account") or "",
            status=document.get("status") or "completed",
            tags=list(document.get("tags") or []),
            recurring=bool(document.get("recurring")),
            balance=_to_float(balance) if balance is not None else None,
        )

    @property
    def label(self) -> str:
        return self.description or self.merchant


@dataclass(slots=True)
class CategoryBreakdown:
    category: str
    amount: float
    percentage: float
    transaction_count: int


@dataclass(slots=True)
class MonthlyTrend:
    month: str
    month_name: str
    income: float
    expenses: float

    @property
    def savings(self) -> float:
        return self.income - self.expenses


@dataclass(slots=True)
class Analytics:
    total_income: float
    total_expenses: float
    savings_rate: float
    daily_average_spend: float
    recurring_expenses: float
    category_breakdown: List[CategoryBreakdown]
    monthly_trends: List[MonthlyTrend]

    @property
    def net_savings(self) -> float:
        return self.total_income - self.total_expenses


@dataclass(slots=True)
class AccountSummary:
    current_balance: float
    opening_balance: float


@dataclass(slots=True)
class MonthlyMetrics:
    year: int
    month: int
    month_label: str
    opening_balance: float
    total_income: float
    total_expenses: float
    days_in_period: int
    is_partial_month: bool


@dataclass(slots=True)
class RecurringExpenseGroup:
    name: str
    total: float
    count: int

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


def _clamp_rate(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return max(-100.0, min(100.0, numerator / denominator * 100))


def _completed(transactions: Iterable[Transaction]) -> List[Transaction]:
    return [txn for txn in transactions if is_completed(txn.status)]


def _total(transactions: Iterable[Transaction], kind: str) -> float:
    return sum(txn.amount for txn in transactions if txn.type == kind)


def calculate_category_breakdown(transactions: List[Transaction]) -> List[CategoryBreakdown]:
    expenses = [txn for txn in _completed(transactions) if txn.type == "expense"]
    total = sum(txn.amount for txn in expenses)
    grouped: Dict[str, List[Transaction]] = {}
    for txn in expenses:
        grouped.setdefault(txn.category, []).append(txn)

    breakdown = []
    for category, txns in grouped.items():
        amount = sum(txn.amount for txn in txns)
        breakdown.append(
            CategoryBreakdown(
                category=category,
                amount=amount,
                percentage=amount / total * 100 if total > 0 else 0.0,
                transaction_count=len(txns),
            )
        )
    breakdown.sort(key=lambda item: item.amount, reverse=True)
    return breakdown


def calculate_monthly_trends(transactions: List[Transaction]) -> List[MonthlyTrend]:
    grouped: Dict[str, List[Transaction]] = {}
    for txn in _completed(transactions):
        grouped.setdefault(txn.date.strftime("%Y-%m"), []).append(txn)

    trends = []
    for month_key in sorted(grouped):
        txns = grouped[month_key]
        year, month = (int(part) for part in month_key.split("-"))
        trends.append(
            MonthlyTrend(
                month=month_key,
                month_name=date(year, month, 1).strftime("%b %Y"),
                income=_total(txns, "income"),
                expenses=_total(txns, "expense"),
            )
        )
    return trends


def calculate_daily_average_spend(transactions: List[Transaction]) -> float:
    """Total expenses divided by calendar days from first to last transaction."""
    expenses = [txn for txn in transactions if txn.type == "expense"]
    if not expenses:
        return 0.0
    dates = [txn.date for txn in transactions]
    span_days = (max(dates) - min(dates)).total_seconds() / 86_400
    calendar_days = max(1, math.ceil(span_days) + 1)
    return sum(txn.amount for txn in expenses) / calendar_days


def calculate_analytics(transactions: List[Transaction]) -> Analytics:
    completed = _completed(transactions)
    total_income = _total(completed, "income")
    total_expenses = _total(completed, "expense")
    return Analytics(
        total_income=total_income,
        total_expenses=total_expenses,
        savings_rate=_clamp_rate(total_income - total_expenses, total_income),
        daily_average_spend=calculate_daily_average_spend(completed),
        recurring_expenses=sum(
            txn.amount for txn in completed if txn.recurring and txn.type == "expense"
        ),
        category_breakdown=calculate_category_breakdown(completed),
        monthly_trends=calculate_monthly_trends(completed),
    )


def separate_one_time_expenses(
    transactions: List[Transaction],
    threshold: float = ONE_TIME_EXPENSE_THRESHOLD,
) -> List[Transaction]:
    """Return completed expenses large enough to be treated as one-off."""
    return [
        txn
        for txn in _completed(transactions)
        if txn.type == "expense" and txn.amount >= threshold
    ]


def _balance_before(txn: Transaction) -> float:
    """Reverse ``txn`` out of its running balance."""
    balance = txn.balance or 0.0
    if txn.type in _INFLOW_TYPES:
        return balance - txn.amount
    if txn.type in _OUTFLOW_TYPES:
        return balance + txn.amount
    return balance


def calculate_account_summary(transactions: List[Transaction]) -> AccountSummary:
    ordered = sorted(_completed(transactions), key=lambda txn: txn.date)
    if not ordered:
        return AccountSummary(current_balance=0.0, opening_balance=0.0)
    return AccountSummary(
        current_balance=ordered[-1].balance or 0.0,
        opening_balance=_balance_before(ordered[0]),
    )


def _month_opening_balance(
    ordered: List[Transaction], month_txns: List[Transaction], year: int, month: int
) -> float:
    month_start = datetime(year, month, 1)
    earlier = [txn for txn in ordered if txn.date < month_start]
    for txn in reversed(earlier):
        if txn.balance is not None:
            return txn.balance
    if month_txns:
        first = next((txn for txn in month_txns if txn.balance is not None), month_txns[0])
        return _balance_before(first)
    return 0.0


def calculate_monthly_metrics(
    transactions: List[Transaction], year: int, month: int
) -> MonthlyMetrics:
    ordered = sorted(_completed(transactions), key=lambda txn: txn.date)
    month_txns = [
        txn for txn in ordered if txn.date.year == year and txn.date.month == month
    ]

    days_in_period = 0
    is_partial = False
    if month_txns:
        first, last = month_txns[0].date, month_txns[-1].date
        days_in_period = math.ceil((last - first).total_seconds() / 86_400) + 1
        last_day = calendar.monthrange(year, month)[1]
        is_partial = first.day != 1 or last.day != last_day

    return MonthlyMetrics(
        year=year,
        month=month,
        month_label=date(year, month, 1).strftime("%B %Y"),
        opening_balance=round(_month_opening_balance(ordered, month_txns, year, month), 2),
        total_income=round(_total(month_txns, "income"), 2),
        total_expenses=round(_total(month_txns, "expense"), 2),
        days_in_period=days_in_period,
        is_partial_month=is_partial,
    )


def group_recurring_expenses(transactions: List[Transaction]) -> List[RecurringExpenseGroup]:
    """Group recurring expenses by merchant (or description) in first-seen order."""
    groups: "OrderedDict[str, RecurringExpenseGroup]" = OrderedDict()
    for txn in transactions:
        if not (txn.recurring and txn.type == "expense"):
            continue
        name = txn.merchant or txn.description or "Unknown"
        group = groups.get(name)
        if group is None:
            groups[name] = RecurringExpenseGroup(name=name, total=txn.amount, count=1)
        else:
            group.total += txn.amount
            group.count += 1
    return list(groups.values())


__all__ = [
    "AccountSummary",
    "Analytics",
    "CategoryBreakdown",
    "MonthlyMetrics",
    "MonthlyTrend",
    "ONE_TIME_EXPENSE_THRESHOLD",
    "RecurringExpenseGroup",
    "Transaction",
    "calculate_account_summary",
    "calculate_analytics",
    "calculate_monthly_metrics",
    "format_inr",
    "group_recurring_expenses",
    "is_completed",
    "separate_one_time_expenses",
]
