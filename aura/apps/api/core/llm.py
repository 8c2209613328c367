from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from aura.libs.json_utils import extract_json_block
from aura.libs.llm_router.router import LLMRouter

SYSTEM_PROMPT = "Você é a Aura, uma companheira de diário emocional empática."

_ROUTER: LLMRouter | None = None
logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def set_router(router: LLMRouter | None) -> None:
    global _ROUTER
    _ROUTER = router


def get_router() -> LLMRouter:
    if _ROUTER is None:
        raise RuntimeError("LLM router has not been initialised")
    return _ROUTER


class LLMResponseError(RuntimeError):
    """Raised when the LLM output cannot be repaired."""


async def call_llm(
    prompt: str | None = None,
    *,
    messages: Sequence[Mapping[str, Any]] | None = None,
    schema: Type[SchemaT] | None = None,
    model: str,
    router: LLMRouter | None = None,
    max_repair_attempts: int = 1,
    **kwargs: Any,
) -> Any:
    """Run a chat completion and, when ``schema`` is given, validate the JSON reply.

    Invalid JSON gets ``max_repair_attempts`` more tries with the parse error fed back
    to the model before ``LLMResponseError`` is raised. Transport errors propagate.
    """

    active_router = router or get_router()

    if messages is None:
        if prompt is None:
            raise ValueError("Either 'prompt' or 'messages' must be provided")
        messages = (
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        )

    base_messages: list[Mapping[str, Any]] = list(messages)
    if not base_messages or base_messages[0].get("role") != "system":
        base_messages = [{"role": "system", "content": SYSTEM_PROMPT}] + base_messages

    request_kwargs = dict(kwargs)
    if schema is not None:
        json_only_instruction = {
            "role": "system",
            "content": (
                "Return ONLY a valid JSON object that matches the expected fields. "
                "Do not include any additional commentary or code fences."
            ),
        }
        base_messages = [base_messages[0], json_only_instruction, *base_messages[1:]]
        request_kwargs["response_format"] = {"type": "json_object"}

    last_error: str | None = None
    last_text: str = ""

    for attempt in range(max_repair_attempts + 1):
        attempt_messages = list(base_messages)
        if attempt > 0 and last_error:
            attempt_messages.append(
                {
                    "role": "system",
                    "content": f"Previous response was invalid: {last_error}. Return ONLY valid JSON.",
                }
            )

        response = await active_router.chat(
            messages=attempt_messages,
            model=model,
            **request_kwargs,
        )
        last_text = response.text or ""

        if schema is None:
            return last_text

        try:
            payload = json.loads(extract_json_block(last_text))
        except json.JSONDecodeError as exc:
            last_error = str(exc)
            logger.debug("[LLM] invalid JSON on attempt %s: %s", attempt + 1, exc)
            continue

        try:
            return schema.model_validate(payload)
        except ValidationError as exc:
            last_error = exc.json()
            logger.debug("[LLM] schema mismatch on attempt %s", attempt + 1)
            continue

    preview = (last_text[:400] + "...") if len(last_text) > 400 else last_text
    raise LLMResponseError(f"LLM output invalid after repair attempts: {last_error}. Last response: {preview}")


__all__ = ["LLMResponseError", "SYSTEM_PROMPT", "call_llm", "get_router", "set_router"]
