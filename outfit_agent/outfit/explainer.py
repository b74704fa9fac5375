import json
import logging
from functools import lru_cache
from typing import Any

from outfit_agent.config import get_settings
from outfit_agent.outfit.exceptions import OutfitError, ParseError
from outfit_agent.outfit.llm_client import LLMClient, get_llm_client
from outfit_agent.outfit.schemas import OutfitResponse

logger = logging.getLogger(__name__)

MAX_BULLETS = 5

SYSTEM_PROMPT = "You are a precise shopping assistant."

PROMPT_TEMPLATE = """Given this JSON result, write 3-5 concise bullet points explaining the selection.

Rules:
- Write like a helpful shopping assistant, not a technical report.
- Avoid repeating field names (do not say "eco score for bottom").
- Combine eco + price naturally in the same sentence.
- First bullet MUST state the missing slots exactly as provided in INPUT_JSON.missing_slots.
- Mention mission, eco_score, and price/budget fit.
- If a slot has zero hits, clearly explain why using the reason field.
- Each bullet must be <= 18 words.
- Do NOT invent information.
- When referencing an item, use its title from INPUT_JSON exactly.
- Return ONLY a JSON array of strings. No extra text.
- Base every statement strictly on INPUT_JSON. Do not generalise beyond it.

INPUT_JSON:
{input_json}
"""

RETRIEVAL_METHOD_LINE = (
    "Items were retrieved by semantic similarity for each slot, "
    "then filtered by price and eco constraints."
)


def fallback_bullets(response: OutfitResponse) -> list[str]:
    """Deterministic explanation built only from the response itself."""
    slots = ", ".join(s.value for s in response.missing_slots) or "none"
    bullets = [
        f"Missing slots detected: {slots}.",
        RETRIEVAL_METHOD_LINE,
    ]

    for result in response.results:
        if not result.hits:
            bullets.append(f"No results for {result.slot.value}: {result.reason or ''}".rstrip())
            continue
        top = result.hits[0]
        bullets.append(
            f"Top {result.slot.value} pick fits constraints: "
            f"Eco={top.eco_score}, Price=£{top.price_gbp:.2f}."
        )

    return bullets[:MAX_BULLETS]


def strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        # drop the opening line (``` or ```json) and the closing fence
        newline = text.find("\n")
        text = text[newline + 1 :] if newline >= 0 else ""
        closing = text.rfind("```")
        if closing >= 0:
            text = text[:closing]
        text = text.strip()
    return text


def parse_bullets(raw: str) -> list[str]:
    """Bullets from model output: a JSON array of strings or ``{"bullets": [...]}``."""
    text = strip_code_fence(raw)

    try:
        data: Any = json.loads(text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError is a ValueError; deep nesting overflows the decoder
        raise ParseError(f"invalid explain JSON: {raw[:200]!r}") from e

    if isinstance(data, dict):
        data = data.get("bullets")

    if not isinstance(data, list) or not all(isinstance(b, str) for b in data):
        raise ParseError(f"invalid explain JSON: {raw[:200]!r}")

    bullets = [b.strip() for b in data if b.strip()]
    if not bullets:
        raise ParseError("explain JSON contained no bullets")
    return bullets


class OutfitExplainer:
    def __init__(self, llm_client: LLMClient | None = None) -> None:
        self._llm_client = llm_client

    def _get_llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = get_llm_client()
        return self._llm_client

    async def explain(self, response: OutfitResponse) -> list[str]:
        """Up to five bullets; any failure falls back, nothing is raised."""
        if not any(result.hits for result in response.results):
            return fallback_bullets(response)

        try:
            bullets = await self._generate(response)
        except OutfitError as e:
            logger.warning("EXPLAIN: using fallback (err=%s)", e)
            return fallback_bullets(response)
        except Exception:
            logger.exception("EXPLAIN: unexpected failure, using fallback")
            return fallback_bullets(response)

        return bullets[:MAX_BULLETS]

    async def _generate(self, response: OutfitResponse) -> list[str]:
        raw = await self._get_llm_client().complete(
            self._build_prompt(response),
            system=SYSTEM_PROMPT,
            temperature=get_settings().llm_temperature,
            max_tokens=400,
        )
        logger.info("EXPLAIN raw=%r", raw[:500])
        return parse_bullets(raw)

    @staticmethod
    def _build_prompt(response: OutfitResponse) -> str:
        input_json = response.model_dump_json(by_alias=False)
        return PROMPT_TEMPLATE.format(input_json=input_json)


@lru_cache
def get_outfit_explainer() -> OutfitExplainer:
    return OutfitExplainer()
