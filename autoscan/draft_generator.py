"""
AI draft generation: turns page text into multiple-choice question drafts.

Model: gpt-4o-mini (override with AUTOSCAN_MODEL env var, e.g. "gpt-4o")
"""

import json
import logging
import os
from typing import Any, List, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from .interfaces import DraftGenerator, GenerationContext
from .models import GenerationResult, McqDraft

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You build exam-preparation decks. Output only JSON of the form "
    '{"questions": [{"stem": str, "options": [str, ...], "correctIndex": int, '
    '"explanation": str, "tags": [str, ...]}]}. '
    "Use 1-3 short topic tags per question. "
    'If the text contains no usable material, return {"questions": []}.'
)

MODE_INSTRUCTIONS = {
    "extract": (
        "Extract every multiple-choice question that already appears in the text below, "
        "verbatim where possible. Do not invent new questions."
    ),
    "generate": (
        "Write new multiple-choice questions that test the key facts and concepts "
        "in the text below."
    ),
}


def build_prompt(text: str, context: GenerationContext) -> str:
    """User-turn prompt for one page (or page pair)."""
    lines = [MODE_INSTRUCTIONS[context.mode]]
    if context.default_tags:
        lines.append(f"Always include these tags: {', '.join(context.default_tags)}.")
    lines.append(f"Source page {context.page_number}:")
    lines.append(text)
    return "\n\n".join(lines)


def parse_drafts(content: str, default_tags: Optional[List[str]] = None) -> List[McqDraft]:
    """
    Parse a model response into drafts.

    Items that fail validation are dropped; all valid items are kept.

    Raises:
        ValueError: If the response is not JSON or has no question list
    """
    payload: Any = json.loads(content)
    items = payload.get("questions") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise ValueError("Response has no question list")

    drafts = []
    for item in items:
        try:
            draft = McqDraft.model_validate(item)
        except ValidationError as e:
            logger.debug("Dropping invalid draft: %s", e.errors()[:1])
            continue
        for tag in default_tags or []:
            if tag not in draft.tags:
                draft.tags.append(tag)
        drafts.append(draft)
    return drafts


class OpenAIDraftGenerator(DraftGenerator):
    """Draft generation through OpenAI chat completions."""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        client: Optional[OpenAI] = None
    ):
        self.model = model or os.getenv("AUTOSCAN_MODEL", DEFAULT_MODEL)
        self.temperature = temperature
        self.max_tokens = max_tokens

        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY is not set. Add it to your .env file.")
            client = OpenAI(api_key=api_key)
        self._client = client

    def generate_drafts(self, text: str, context: GenerationContext) -> GenerationResult:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(text, context)},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            return GenerationResult(ok=False, error=f"Generation failed: {e}")

        content = response.choices[0].message.content or ""
        try:
            drafts = parse_drafts(content, context.default_tags)
        except ValueError as e:
            return GenerationResult(ok=False, error=f"Unreadable generation output: {e}")

        return GenerationResult(ok=True, drafts=drafts)
