"""Client wrapper for chat-style text generation with Google Gemini models."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Sequence, TypedDict

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from finance_app.core.config import GeminiSettings


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-2.0-flash",
    "gemini-1.5-flash",
)

logger = logging.getLogger(__name__)


class ChatMessage(TypedDict):
    """One turn of a chat conversation."""

    role: str
    content: str


class GenerationError(RuntimeError):
    """Raised when the generation provider cannot fulfil a request."""


class GenerationClient:
    """Turn an ordered list of chat messages into a single text completion.

    ``system`` messages become the model's system instruction; ``user`` and
    ``assistant`` turns are forwarded as conversation contents. The call is
    made once per model candidate: a missing model falls through to the next
    candidate, while any other provider error is raised immediately as
    :class:`GenerationError` without retrying.
    """

    def __init__(self, settings: GeminiSettings) -> None:
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int | None = None,
    ) -> str:
        """Return the raw text produced for ``messages``."""
        system_instruction, contents = _split_messages(messages)
        if not contents:
            raise GenerationError("At least one user message is required.")

        generation_config = {
            "max_output_tokens": max_tokens or self._settings.max_output_tokens,
            "temperature": self._settings.temperature,
        }

        def _invoke() -> str:
            response = self._invoke_with_models(
                models=self._text_model_candidates(),
                system_instruction=system_instruction,
                error_prefix="Gemini generate_content failed",
                call=lambda model: model.generate_content(
                    contents,
                    generation_config=generation_config,
                ),
            )
            return response.text or ""

        text = await asyncio.to_thread(_invoke)
        if not text.strip():
            raise GenerationError("Gemini returned an empty response.")
        return text

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        system_instruction: str | None,
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(
                model_name,
                system_instruction=system_instruction,
            )
            try:
                return call(generative_model)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GenerationError(f"{error_prefix}: {exc.message}") from exc
            except ValueError as exc:  # pragma: no cover - blocked/empty candidates
                raise GenerationError(f"{error_prefix}: {exc}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GenerationError(
                "Gemini model '"
                f"{primary}"
                "' is not available. Update GEMINI_MODEL_NAME to a supported value."
            ) from last_not_found

        raise GenerationError(f"{error_prefix}: Unknown error invoking Gemini.")

    def _text_model_candidates(self) -> list[str]:
        return self._collect_candidates(self._settings.model_name, _TEXT_FALLBACKS)

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _split_messages(
    messages: Sequence[ChatMessage],
) -> tuple[str | None, list[dict[str, Any]]]:
    """Separate system instructions from conversation turns."""
    system_parts: list[str] = []
    contents: list[dict[str, Any]] = []
    for message in messages:
        role = message["role"]
        if role == "system":
            system_parts.append(message["content"])
            continue
        contents.append(
            {
                "role": "model" if role == "assistant" else "user",
                "parts": [message["content"]],
            }
        )
    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


__all__ = ["ChatMessage", "GenerationClient", "GenerationError"]
