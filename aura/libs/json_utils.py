from __future__ import annotations

import re


def extract_json_block(blob: str) -> str:
    """
    Strip markdown fences and trailing commas from LLM responses,
    returning a best-effort JSON string.
    """

    text = (blob or "").strip()
    if text.startswith("```"):
        newline_idx = text.find("\n")
        if newline_idx != -1:
            text = text[newline_idx + 1 :]
        if text.endswith("```"):
            text = text[:-3]
    text = text.strip()
    if text:
        opening_idx = min(
            (idx for idx in (text.find("{"), text.find("[")) if idx != -1),
            default=-1,
        )
        if opening_idx > 0:
            text = text[opening_idx:]
        closing_idx = max(text.rfind("]"), text.rfind("}"))
        if closing_idx != -1:
            text = text[: closing_idx + 1]
    text = _strip_trailing_commas(text)
    return text.strip()


def _strip_trailing_commas(text: str) -> str:
    return re.sub(r",(\s*[}\]])", r"\1", text)


__all__ = ["extract_json_block"]
