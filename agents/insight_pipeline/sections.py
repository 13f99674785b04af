"""
Schema dispatch for parsed generator output.

Each insight type asks the generator for a differently shaped JSON object.
:func:`classify` recognises the shape once and tags the payload; a converter
per shape then derives display sections, which are also rendered to
markdown so every record carries readable ``content``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from finance_app.schemas import InsightSection, InsightShape, StructuredPayload
from finance_app.schemas.insights import SECTION_TYPES, SEVERITIES
from finance_app.services.analytics import format_inr

from .models import ParsedResponse

logger = logging.getLogger(__name__)

Converter = Callable[[Dict[str, Any]], List[InsightSection]]


def _has(data: Dict[str, Any], *keys: str) -> bool:
    return all(data.get(key) is not None for key in keys)


def classify(data: Dict[str, Any]) -> Optional[StructuredPayload]:
    """Tag ``data`` with the first shape whose marker keys it carries."""
    if _has(data, "tips", "regime"):
        shape = InsightShape.TAX_TIPS
    elif _has(data, "healthScore", "topCategories"):
        shape = InsightShape.SPENDING_ANALYSIS
    elif _has(data, "needs", "wants", "savingsInvestments"):
        shape = InsightShape.MONTHLY_BUDGET
    elif _has(data, "weeklyTarget", "dailyLimit"):
        shape = InsightShape.WEEKLY_BUDGET
    elif _has(data, "portfolioValue", "diversification"):
        shape = InsightShape.INVESTMENT_INSIGHTS
    elif _has(data, "planScore", "allocationReview"):
        shape = InsightShape.PLANNER_RECOMMENDATION
    elif isinstance(data.get("sections"), list):
        shape = InsightShape.LEGACY_SECTIONS
    else:
        return None
    return StructuredPayload(shape=shape, data=data)


def _rs(value: Any) -> str:
    return format_inr(_num(value), decimals=2)


def _num(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise TypeError("expected a number, got a boolean")
    return float(value)


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _plain(value: Any) -> str:
    number = _num(value)
    return str(int(number)) if number.is_integer() else str(number)


def _signed(value: Any, places: int = 1) -> str:
    number = _num(value)
    return f"{'+' if number >= 0 else ''}{number:.{places}f}"


def _items(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"'{key}' must be a list")
    return [item for item in value if isinstance(item, dict)]


def _status(value: Any) -> str:
    return "" if value is None else str(value).replace("_", " ", 1)


def _severity(value: Any) -> Optional[str]:
    return value if value in SEVERITIES else None


def _score_severity(score: Any) -> str:
    number = _num(score)
    if number >= 75:
        return "positive"
    return "warning" if number >= 50 else "critical"


def _highlight(
    data: Dict[str, Any], key: str, section_id: str, title: str, severity: str
) -> List[InsightSection]:
    if not data.get(key):
        return []
    return [
        InsightSection(
            id=section_id,
            title=title,
            type="highlight",
            highlight=str(data[key]),
            severity=severity,
        )
    ]


def tax_tips_sections(data: Dict[str, Any]) -> List[InsightSection]:
    regime = data["regime"]
    recommended = _text(regime, "recommended")
    savings = _num(regime.get("savings"))
    sections = [
        InsightSection(
            id="current_status",
            title="Tax Status",
            type="summary",
            text=(
                f"Recommended regime: **{'Old' if recommended == 'old' else 'New'}**. "
                f"Old regime tax: {_rs(regime.get('oldTax'))}, "
                f"New regime tax: {_rs(regime.get('newTax'))}. "
                f"You save {_rs(savings)} with the {recommended} regime "
                f"(effective rate: {_num(regime.get('effectiveRate')):.1f}%)."
            ),
            severity="positive" if savings > 0 else "neutral",
        )
    ]

    utilization = _items(data, "deductionUtilization")
    if utilization:
        sections.append(
            InsightSection(
                id="deduction_utilization",
                title="Deduction Utilization",
                type="list",
                items=[
                    f"**{_text(d, 'section')}** ({_text(d, 'label')}): "
                    f"{_rs(d.get('used'))} of {_rs(d.get('limit'))} used "
                    f"({_rs(max(0.0, _num(d.get('limit')) - _num(d.get('used'))))} remaining)"
                    for d in utilization
                ],
                severity="warning"
                if any(_num(d.get("used")) < _num(d.get("limit")) * 0.5 for d in utilization)
                else "positive",
            )
        )

    tips = _items(data, "tips")
    if tips:
        sections.append(
            InsightSection(
                id="action_plan",
                title="Tax-Saving Tips",
                type="numbered_list",
                items=[
                    f"**{_text(t, 'title')}**: {_text(t, 'description')} "
                    f"(saves {_rs(t.get('savingAmount'))}, Section {_text(t, 'section')})"
                    for t in tips
                ],
                severity="positive",
            )
        )

    subscriptions = _items(data, "subscriptions")
    if subscriptions:
        sections.append(
            InsightSection(
                id="subscriptions",
                title="Subscription Optimization",
                type="list",
                items=[
                    f"**{_text(s, 'name')}** ({_text(s, 'domain')}): "
                    f"{_rs(s.get('monthlyCost'))}/mo. {_text(s, 'suggestion')}".rstrip()
                    for s in subscriptions
                ],
                severity="neutral",
            )
        )

    if data.get("totalSavingPotential") is not None:
        sections.append(
            InsightSection(
                id="total_savings",
                title="Total Savings Potential",
                type="highlight",
                highlight=(
                    f"You can save up to **{_rs(data['totalSavingPotential'])}** "
                    "in tax this year."
                ),
                severity="positive",
            )
        )
    return sections


def spending_sections(data: Dict[str, Any]) -> List[InsightSection]:
    summary = data["summary"]
    sections = [
        InsightSection(
            id="overview",
            title="Financial Health Overview",
            type="summary",
            text=(
                f"Health Score: **{_plain(data['healthScore'])}/100**. {_text(summary, 'verdict')} "
                f"Income: {_rs(summary.get('income'))}, Expenses: {_rs(summary.get('expenses'))}, "
                f"Savings: {_rs(summary.get('savings'))} "
                f"({_num(summary.get('savingsRate')):.1f}%)."
            ),
            severity=_score_severity(data["healthScore"]),
        )
    ]

    categories = _items(data, "topCategories")
    if categories:
        items = []
        for category in categories:
            line = (
                f"**{_text(category, 'name')}**: {_rs(category.get('amount'))} "
                f"({_num(category.get('percentage')):.1f}%)"
            )
            if category.get("trend"):
                line += f", trend: {category['trend']}"
            if category.get("suggestion"):
                line += f". {category['suggestion']}"
            items.append(line)
        sections.append(
            InsightSection(
                id="spending_patterns",
                title="Top Spending Categories",
                type="list",
                items=items,
                severity="neutral",
            )
        )

    actions = _items(data, "actionItems")
    if actions:
        sections.append(
            InsightSection(
                id="areas_to_optimize",
                title="Action Items",
                type="numbered_list",
                items=[
                    f"**{_text(a, 'title')}**: {_text(a, 'description')} "
                    f"(impact: {_text(a, 'impact')}, saves ~{_rs(a.get('savingAmount'))}/mo)"
                    for a in actions
                ],
                severity="warning",
            )
        )

    alerts = _items(data, "alerts")
    if alerts:
        sections.append(
            InsightSection(
                id="risk_flags",
                title="Alerts",
                type="list",
                items=[
                    f"[{_text(a, 'type').upper()}] **{_text(a, 'title')}**: {_text(a, 'message')}"
                    for a in alerts
                ],
                severity="critical"
                if any(a.get("type") == "critical" for a in alerts)
                else "warning",
            )
        )

    sections.extend(_highlight(data, "keyInsight", "key_takeaway", "Key Insight", "positive"))
    return sections


def monthly_budget_sections(data: Dict[str, Any]) -> List[InsightSection]:
    needs, wants, saved = data["needs"], data["wants"], data["savingsInvestments"]
    surplus = _num(data.get("surplus"))
    sections = [
        InsightSection(
            id="budget_overview",
            title="Monthly Budget Overview",
            type="summary",
            text=(
                f"Income: {_rs(data.get('totalIncome'))}, Budget: {_rs(data.get('totalBudget'))}, "
                f"Surplus: {_rs(surplus)}. Needs: {_num(needs.get('percentage')):.0f}% | "
                f"Wants: {_num(wants.get('percentage')):.0f}% | "
                f"Savings: {_num(saved.get('percentage')):.0f}%."
            ),
            severity="positive" if surplus >= 0 else "critical",
        )
    ]

    for label, bucket in (
        ("Needs", needs),
        ("Wants", wants),
        ("Savings & Investments", saved),
    ):
        categories = _items(bucket, "categories")
        if not categories:
            continue
        sections.append(
            InsightSection(
                id="_".join(label.lower().split()),
                title=f"{label} ({_rs(bucket.get('total'))})",
                type="list",
                items=[
                    f"**{_text(c, 'name')}**: Budget {_rs(c.get('budgeted'))}, "
                    f"Actual {_rs(c.get('actual'))}, {_status(c.get('status'))}"
                    for c in categories
                ],
                severity="warning"
                if any(c.get("status") == "over" for c in categories)
                else "positive",
            )
        )

    opportunities = _items(data, "savingsOpportunities")
    if opportunities:
        sections.append(
            InsightSection(
                id="savings_opportunities",
                title="Savings Opportunities",
                type="numbered_list",
                items=[
                    f"**{_text(o, 'title')}**: {_text(o, 'description')} "
                    f"(save ~{_rs(o.get('amount'))}/mo)"
                    for o in opportunities
                ],
                severity="positive",
            )
        )

    sections.extend(_highlight(data, "positiveNote", "positive_note", "Positive Note", "positive"))
    return sections


def weekly_budget_sections(data: Dict[str, Any]) -> List[InsightSection]:
    on_track = bool(data.get("onTrack"))
    sections = [
        InsightSection(
            id="week_glance",
            title="Week at a Glance",
            type="summary",
            text=(
                f"Target: {_rs(data['weeklyTarget'])}, Spent: {_rs(data.get('spent'))}, "
                f"Remaining: {_rs(data.get('remaining'))}. "
                f"Daily limit: {_rs(data['dailyLimit'])}. "
                f"{_plain(data.get('daysRemaining'))} days left. "
                f"{'On track!' if on_track else 'Over budget, cut back.'}"
            ),
            severity="positive" if on_track else "warning",
        )
    ]

    categories = _items(data, "categories")
    if categories:
        sections.append(
            InsightSection(
                id="category_budgets",
                title="Category Budgets",
                type="list",
                items=[
                    f"**{_text(c, 'name')}**: {_rs(c.get('spent'))} of {_rs(c.get('weeklyBudget'))} "
                    f"({_rs(c.get('remaining'))} left), {_status(c.get('status'))}"
                    for c in categories
                ],
                severity="warning"
                if any(c.get("status") == "over" for c in categories)
                else "neutral",
            )
        )

    quick_wins = _items(data, "quickWins")
    if quick_wins:
        sections.append(
            InsightSection(
                id="quick_wins",
                title="Quick Wins",
                type="numbered_list",
                items=[
                    f"**{_text(q, 'title')}**: {_text(q, 'description')} "
                    f"(save ~{_rs(q.get('savingAmount'))})"
                    for q in quick_wins
                ],
                severity="positive",
            )
        )

    sections.extend(_highlight(data, "weeklyRule", "weekly_rule", "Rule of the Week", "neutral"))
    return sections


def investment_sections(data: Dict[str, Any]) -> List[InsightSection]:
    return_pct = _num(data.get("returnPercentage"))
    xirr = data.get("xirr")
    xirr_text = f", XIRR: {_num(xirr):.1f}%" if xirr is not None else ""
    sections = [
        InsightSection(
            id="portfolio_health",
            title="Portfolio Health",
            type="summary",
            text=(
                f"Value: {_rs(data['portfolioValue'])}, Invested: {_rs(data.get('totalInvested'))}, "
                f"Returns: {_rs(data.get('totalReturns'))} ({return_pct:.1f}%){xirr_text}. "
                f"{_text(data, 'verdict')}"
            ).rstrip(),
            severity="positive" if return_pct >= 0 else "critical",
        )
    ]

    stocks = _items(data, "stocks")
    if stocks:
        sections.append(
            InsightSection(
                id="stock_analysis",
                title="Stock Analysis",
                type="list",
                items=[
                    f"**{_text(s, 'symbol')}** ({_text(s, 'name')}): {_rs(s.get('currentValue'))} "
                    f"({_signed(s.get('returnPercentage'))}%). {_text(s, 'recommendation')}".rstrip()
                    for s in stocks
                ],
                severity="neutral",
            )
        )

    funds = _items(data, "mutualFunds")
    if funds:
        items = []
        for fund in funds:
            sip = _num(fund.get("sipAmount") or 0)
            sip_text = f", SIP {_rs(sip)}/mo" if sip > 0 else ""
            items.append(
                f"**{_text(fund, 'name')}**: {_rs(fund.get('currentValue'))} "
                f"({_signed(fund.get('returnPercentage'))}%){sip_text}. "
                f"{_text(fund, 'recommendation')}".rstrip()
            )
        sections.append(
            InsightSection(
                id="mf_review",
                title="Mutual Fund Review",
                type="list",
                items=items,
                severity="neutral",
            )
        )

    actions = _items(data, "actionItems")
    if actions:
        sections.append(
            InsightSection(
                id="action_items",
                title="Action Items",
                type="numbered_list",
                items=[
                    f"**{_text(a, 'title')}**: {_text(a, 'description')} "
                    f"({_text(a, 'priority')} priority)"
                    for a in actions
                ],
                severity="warning",
            )
        )

    sections.extend(
        _highlight(data, "goalAlignment", "goal_alignment", "Goal Alignment", "positive")
    )
    return sections


def planner_sections(data: Dict[str, Any]) -> List[InsightSection]:
    review = data["allocationReview"]
    sections = [
        InsightSection(
            id="plan_overview",
            title="Plan Health",
            type="summary",
            text=f"Plan Score: **{_plain(data['planScore'])}/100**. {_text(data, 'summary')}".rstrip(),
            severity=_score_severity(data["planScore"]),
        ),
        InsightSection(
            id="allocation_review",
            title="Allocation Review",
            type="summary",
            text=(
                f"Needs: **{_num(review.get('needsPct')):.0f}%** | "
                f"Wants: **{_num(review.get('wantsPct')):.0f}%** | "
                f"Investments: **{_num(review.get('investmentsPct')):.0f}%** | "
                f"Savings: **{_num(review.get('savingsPct')):.0f}%**. {_text(review, 'verdict')}"
            ).rstrip(),
            severity=_severity(review.get("severity")),
        ),
    ]

    plan_vs_actual = _items(data, "planVsActual")
    if plan_vs_actual:
        sections.append(
            InsightSection(
                id="plan_vs_actual",
                title="Plan vs Actual",
                type="list",
                items=[
                    f"**{_text(p, 'category')}**: Planned {_rs(p.get('planned'))}, "
                    f"Actual {_rs(p.get('actual'))} "
                    f"({_signed(p.get('deviation'), 0)}%), {_status(p.get('status'))}"
                    for p in plan_vs_actual
                ],
                severity="warning"
                if any(p.get("status") == "over" for p in plan_vs_actual)
                else "positive",
            )
        )

    goals = _items(data, "goalFeasibility")
    if goals:
        items = []
        for goal in goals:
            monthly = _num(goal.get("monthlySaving") or 0)
            pace = (
                f"{_plain(goal.get('monthsToGoal'))} months at {_rs(monthly)}/mo"
                if monthly > 0
                else "no monthly saving"
            )
            items.append(
                f"**{_text(goal, 'goalName')}**: {_rs(goal.get('currentAmount'))} "
                f"of {_rs(goal.get('targetAmount'))} ({pace}), "
                f"{'On track' if goal.get('feasible') else 'At risk'}. "
                f"{_text(goal, 'suggestion')}".rstrip()
            )
        sections.append(
            InsightSection(
                id="goal_feasibility",
                title="Goal Feasibility",
                type="list",
                items=items,
                severity="warning"
                if any(not goal.get("feasible") for goal in goals)
                else "positive",
            )
        )

    recommendations = _items(data, "recommendations")
    if recommendations:
        sections.append(
            InsightSection(
                id="recommendations",
                title="Recommendations",
                type="numbered_list",
                items=[
                    f"**{_text(r, 'title')}**: {_text(r, 'description')} "
                    f"({_text(r, 'impact')} impact)"
                    for r in recommendations
                ],
                severity="neutral",
            )
        )

    sections.extend(_highlight(data, "keyTakeaway", "key_takeaway", "Key Takeaway", "positive"))
    return sections


def legacy_sections(raw_sections: List[Any]) -> List[InsightSection]:
    """Keep well-formed sections from a generator-authored ``sections`` list.

    Only the body field matching the section ``type`` is carried over.
    """
    sections = []
    for entry in raw_sections:
        if not isinstance(entry, dict):
            continue
        section_type = entry.get("type")
        if not (entry.get("id") and entry.get("title") and section_type in SECTION_TYPES):
            continue
        text = items = highlight = None
        if section_type == "summary":
            text = _text(entry, "text") or None
        elif section_type == "highlight":
            highlight = _text(entry, "highlight") or None
        elif isinstance(entry.get("items"), list):
            items = [str(item) for item in entry["items"]]
        sections.append(
            InsightSection(
                id=str(entry["id"]),
                title=str(entry["title"]),
                type=section_type,
                text=text,
                items=items,
                highlight=highlight,
                severity=_severity(entry.get("severity")),
            )
        )
    return sections


CONVERTERS: Dict[InsightShape, Converter] = {
    InsightShape.TAX_TIPS: tax_tips_sections,
    InsightShape.SPENDING_ANALYSIS: spending_sections,
    InsightShape.MONTHLY_BUDGET: monthly_budget_sections,
    InsightShape.WEEKLY_BUDGET: weekly_budget_sections,
    InsightShape.INVESTMENT_INSIGHTS: investment_sections,
    InsightShape.PLANNER_RECOMMENDATION: planner_sections,
}


def render_markdown(sections: List[InsightSection]) -> str:
    lines: List[str] = []
    for section in sections:
        lines.append(f"## {section.title}")
        if section.text:
            lines.append(section.text)
        if section.items is not None:
            numbered = section.type == "numbered_list"
            for index, item in enumerate(section.items, start=1):
                lines.append(f"{index}. {item}" if numbered else f"- {item}")
        if section.highlight:
            lines.append(f"**{section.highlight}**")
        lines.append("")
    return "\n".join(lines)


def normalize(raw: str, data: Optional[Dict[str, Any]]) -> ParsedResponse:
    """Turn a parsed JSON object into content, sections and tagged data.

    Anything unrecognised or malformed degrades to the raw text.
    """
    if data is None:
        return ParsedResponse(content=raw)

    payload = classify(data)
    if payload is None:
        logger.warning("Parsed JSON but could not detect any known insight format")
        return ParsedResponse(content=raw)

    if payload.shape is InsightShape.LEGACY_SECTIONS:
        sections = legacy_sections(data["sections"])
        if not sections:
            logger.warning("Legacy sections payload contained no valid sections")
            return ParsedResponse(content=raw)
        return ParsedResponse(content=render_markdown(sections), sections=sections)

    try:
        sections = CONVERTERS[payload.shape](payload.data)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.warning(
            "Failed converting %s payload to sections: %r", payload.shape.value, exc
        )
        return ParsedResponse(content=raw)
    return ParsedResponse(
        content=render_markdown(sections),
        sections=sections,
        structured_data=payload,
    )


__all__ = [
    "CONVERTERS",
    "classify",
    "legacy_sections",
    "normalize",
    "render_markdown",
]
