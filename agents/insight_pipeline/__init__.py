"""Insight generation pipeline.

Turns a user's stored financial records into a cached, typed insight by
collecting context, prompting the generator and normalising its reply.
"""

from __future__ import annotations

from typing import Any

_EXPORTS = {
    "InsightPipeline": ".pipeline",
    "build_pipeline": ".pipeline",
    "run_ai_pipeline": ".pipeline",
    "generate_user_insights": ".worker",
    "InsightQueueWorker": ".worker",
}


def __getattr__(name: str) -> Any:
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)


__all__ = sorted(_EXPORTS)
