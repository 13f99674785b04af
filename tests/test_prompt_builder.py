try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from agents.insight_pipeline.models import PipelineContext
from agents.insight_pipeline.prompts import (
    TASK_LABELS,
    build_messages,
    build_user_message,
    get_system_prompt,
)
from finance_app.schemas import InsightType


@pytest.mark.parametrize("insight_type", list(InsightType))
def test_every_type_has_a_json_only_system_prompt(insight_type):
    prompt = get_system_prompt(insight_type)

    assert "Return ONLY a valid JSON object" in prompt
    assert insight_type in TASK_LABELS


def test_user_message_skips_empty_blocks_and_keeps_order():
    context = PipelineContext(
        user_id="user-1",
        financial_context="FIN",
        market_context="MKT",
        investment_context="INV",
    )

    message = build_user_message(InsightType.INVESTMENT_INSIGHTS, context)

    assert message == (
        "Here is my financial data:\n\n\n"
        "FIN\n\n"
        "INV\n\n"
        "MKT\n\n\n"
        "Please analyze my investment portfolio and provide insights."
    )


def test_build_messages_returns_system_then_user():
    context = PipelineContext(user_id="user-1", tax_context="## Tax Analysis")

    messages = build_messages(InsightType.TAX_OPTIMIZATION, context).as_chat_messages()

    assert [message["role"] for message in messages] == ["system", "user"]
    assert messages[0]["content"] == get_system_prompt(InsightType.TAX_OPTIMIZATION)
    assert "## Tax Analysis" in messages[1]["content"]
    assert messages[1]["content"].endswith(TASK_LABELS[InsightType.TAX_OPTIMIZATION])
