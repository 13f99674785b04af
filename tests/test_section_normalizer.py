try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import copy
import json

import pytest

from agents.insight_pipeline.sections import classify, normalize, render_markdown
from finance_app.schemas import InsightShape

SPENDING = {
    "healthScore": 68,
    "summary": {
        "income": 100000,
        "expenses": 70000,
        "savings": 30000,
        "savingsRate": 30,
        "verdict": "Decent savings.",
    },
    "topCategories": [
        {
            "name": "Food",
            "amount": 20000,
            "percentage": 28.6,
            "trend": "up",
            "suggestion": "Cook at home twice a week.",
        }
    ],
    "actionItems": [
        {
            "title": "Cut dining out",
            "description": "Reduce restaurant spend by Rs.5,000",
            "impact": "high",
            "savingAmount": 5000,
            "category": "Food",
        }
    ],
    "alerts": [{"type": "critical", "title": "Overspend", "message": "Food is up 40%."}],
    "keyInsight": "Cooking at home is your biggest lever.",
}

TAX = {
    "regime": {
        "recommended": "new",
        "oldTax": 202800,
        "newTax": 97500,
        "savings": 105300,
        "effectiveRate": 6.5,
    },
    "deductionUtilization": [
        {"section": "80C", "label": "PPF/ELSS", "used": 50000, "limit": 150000}
    ],
    "tips": [
        {
            "title": "Top up 80C",
            "description": "Invest Rs.1,00,000 more in ELSS",
            "savingAmount": 31200,
            "section": "80C",
        }
    ],
    "totalSavingPotential": 31200,
}

MONTHLY = {
    "totalIncome": 100000,
    "totalBudget": 90000,
    "surplus": 10000,
    "needs": {
        "total": 50000,
        "percentage": 50,
        "categories": [{"name": "Rent", "budgeted": 30000, "actual": 32000, "status": "over"}],
    },
    "wants": {"total": 30000, "percentage": 30, "categories": []},
    "savingsInvestments": {
        "total": 10000,
        "percentage": 10,
        "categories": [{"name": "SIP", "budgeted": 10000, "actual": 10000, "status": "on_track"}],
    },
    "positiveNote": "Your SIP discipline is excellent.",
}

INVESTMENT = {
    "portfolioValue": 78000,
    "totalInvested": 65000,
    "totalReturns": 13000,
    "returnPercentage": 20,
    "diversification": {"equity": 100},
    "verdict": "Strong returns but concentrated.",
    "stocks": [
        {
            "symbol": "INFY",
            "name": "Infosys",
            "currentValue": 18000,
            "returnPercentage": 20,
            "recommendation": "Hold",
        }
    ],
}

PLANNER = {
    "planScore": 82,
    "summary": "Well balanced plan.",
    "allocationReview": {
        "needsPct": 50,
        "wantsPct": 20,
        "investmentsPct": 20,
        "savingsPct": 10,
        "verdict": "Close to 50/30/20.",
        "severity": "positive",
    },
    "keyTakeaway": "Keep the SIPs running.",
}


def _parse_markdown(content: str):
    """Split rendered markdown back into (title, body lines) pairs."""
    parsed = []
    for block in content.split("## ")[1:]:
        title, *body = block.rstrip("\n").split("\n")
        parsed.append((title, body))
    return parsed


@pytest.mark.parametrize(
    ("payload", "shape"),
    [
        (TAX, InsightShape.TAX_TIPS),
        (SPENDING, InsightShape.SPENDING_ANALYSIS),
        (MONTHLY, InsightShape.MONTHLY_BUDGET),
        ({"weeklyTarget": 1, "dailyLimit": 1}, InsightShape.WEEKLY_BUDGET),
        (INVESTMENT, InsightShape.INVESTMENT_INSIGHTS),
        (PLANNER, InsightShape.PLANNER_RECOMMENDATION),
        ({"sections": []}, InsightShape.LEGACY_SECTIONS),
    ],
)
def test_classify_recognises_each_shape(payload, shape):
    assert classify(payload).shape is shape


def test_tax_shape_wins_over_spending_markers():
    payload = {**SPENDING, **TAX}

    assert classify(payload).shape is InsightShape.TAX_TIPS


def test_null_marker_values_do_not_count():
    assert classify({"healthScore": None, "topCategories": []}) is None
    assert classify({"sections": "not-a-list"}) is None


def test_spending_sections_lead_with_overview():
    result = normalize(json.dumps(SPENDING), SPENDING)

    ids = [section.id for section in result.sections]
    assert ids == [
        "overview",
        "spending_patterns",
        "areas_to_optimize",
        "risk_flags",
        "key_takeaway",
    ]
    overview = result.sections[0]
    assert overview.type == "summary"
    assert overview.severity == "warning"
    assert overview.text == (
        "Health Score: **68/100**. Decent savings. Income: Rs.1,00,000, "
        "Expenses: Rs.70,000, Savings: Rs.30,000 (30.0%)."
    )
    assert result.sections[3].severity == "critical"
    assert result.sections[3].items == ["[CRITICAL] **Overspend**: Food is up 40%."]
    assert result.structured_data.shape is InsightShape.SPENDING_ANALYSIS
    assert result.structured_data.data == SPENDING


def test_tax_sections():
    result = normalize("raw", TAX)

    assert [section.id for section in result.sections] == [
        "current_status",
        "deduction_utilization",
        "action_plan",
        "total_savings",
    ]
    assert result.sections[0].text.startswith("Recommended regime: **New**.")
    assert result.sections[1].severity == "warning"
    assert result.sections[1].items == [
        "**80C** (PPF/ELSS): Rs.50,000 of Rs.1,50,000 used (Rs.1,00,000 remaining)"
    ]
    assert result.sections[-1].type == "highlight"


def test_monthly_budget_sections_skip_empty_buckets():
    result = normalize("raw", MONTHLY)

    ids = [section.id for section in result.sections]
    assert ids == ["budget_overview", "needs", "savings_&_investments", "positive_note"]
    assert result.sections[1].severity == "warning"
    assert result.sections[2].items == [
        "**SIP**: Budget Rs.10,000, Actual Rs.10,000, on track"
    ]


def test_investment_and_planner_sections():
    investment = normalize("raw", INVESTMENT)
    planner = normalize("raw", PLANNER)

    assert [s.id for s in investment.sections] == ["portfolio_health", "stock_analysis"]
    assert investment.sections[1].items == ["**INFY** (Infosys): Rs.18,000 (+20.0%). Hold"]
    assert [s.id for s in planner.sections] == [
        "plan_overview",
        "allocation_review",
        "key_takeaway",
    ]
    assert planner.sections[0].severity == "positive"


@pytest.mark.parametrize("payload", [SPENDING, TAX, MONTHLY, INVESTMENT, PLANNER])
def test_rendered_markdown_reflects_sections(payload):
    result = normalize("raw", payload)

    parsed = _parse_markdown(result.content)

    assert [title for title, _ in parsed] == [s.title for s in result.sections]
    for (_, body), section in zip(parsed, result.sections):
        if section.text:
            assert body[0] == section.text
        for index, item in enumerate(section.items or [], start=1):
            marker = f"{index}. " if section.type == "numbered_list" else "- "
            assert f"{marker}{item}" in body
        if section.highlight:
            assert f"**{section.highlight}**" in body


def test_legacy_sections_keep_only_valid_entries():
    payload = {
        "sections": [
            {"id": "intro", "title": "Intro", "type": "summary", "text": "Hello", "severity": "loud"},
            {"id": "chart", "title": "Chart", "type": "chart"},
            "junk",
            {"id": "tips", "title": "Tips", "type": "list", "items": ["a", 2]},
        ]
    }

    result = normalize("raw", payload)

    assert [section.id for section in result.sections] == ["intro", "tips"]
    assert result.sections[0].severity is None
    assert result.sections[1].items == ["a", "2"]
    assert result.structured_data is None
    assert result.content == render_markdown(result.sections)


def test_legacy_without_valid_sections_uses_raw_text():
    result = normalize("raw text", {"sections": [{"id": "x"}]})

    assert result.content == "raw text"
    assert result.sections is None


def test_malformed_payload_degrades_to_raw_text():
    broken = copy.deepcopy(SPENDING)
    del broken["summary"]

    result = normalize("raw text", broken)

    assert result.content == "raw text"
    assert result.sections is None
    assert result.structured_data is None


def test_boolean_where_number_expected_degrades():
    broken = {**SPENDING, "healthScore": True}

    assert normalize("raw text", broken).content == "raw text"


def test_unknown_shape_uses_raw_text():
    result = normalize("raw text", {"foo": "bar"})

    assert result.content == "raw text"
    assert result.sections is None


def test_missing_leaf_field_keeps_sections():
    partial = copy.deepcopy(SPENDING)
    partial["topCategories"] = [{"name": "Food", "amount": 200, "percentage": 40}]
    del partial["actionItems"][0]["savingAmount"]
    del partial["keyInsight"]

    result = normalize(json.dumps(partial), partial)

    assert [section.id for section in result.sections] == [
        "overview",
        "spending_patterns",
        "areas_to_optimize",
        "risk_flags",
    ]
    assert result.sections[1].items == ["**Food**: Rs.200 (40.0%)"]
    assert result.sections[2].items == [
        "**Cut dining out**: Reduce restaurant spend by Rs.5,000 (impact: high, saves ~Rs.0/mo)"
    ]
    assert result.structured_data.shape is InsightShape.SPENDING_ANALYSIS
    assert result.content == render_markdown(result.sections)


def test_missing_nested_summary_values_still_render():
    partial = copy.deepcopy(TAX)
    del partial["regime"]["effectiveRate"]
    del partial["tips"][0]["section"]

    result = normalize("raw text", partial)

    assert result.sections[0].text.endswith("(effective rate: 0.0%).")
    assert result.sections[2].items[0].startswith("**Top up 80C**:")
    assert result.content != "raw text"


def test_legacy_sections_keep_only_body_matching_type():
    payload = {
        "sections": [
            {
                "id": "intro",
                "title": "Intro",
                "type": "summary",
                "text": "Hello",
                "items": ["stray"],
                "highlight": "stray",
            },
            {
                "id": "tips",
                "title": "Tips",
                "type": "numbered_list",
                "text": "stray",
                "items": ["a"],
            },
            {
                "id": "note",
                "title": "Note",
                "type": "highlight",
                "text": "stray",
                "highlight": "Save more",
            },
        ]
    }

    sections = normalize("raw", payload).sections

    assert (sections[0].text, sections[0].items, sections[0].highlight) == ("Hello", None, None)
    assert (sections[1].text, sections[1].items, sections[1].highlight) == (None, ["a"], None)
    assert (sections[2].text, sections[2].items, sections[2].highlight) == (None, None, "Save more")
