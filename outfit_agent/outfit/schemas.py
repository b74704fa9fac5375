import logging
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from outfit_agent.common.schemas import BaseSchema

logger = logging.getLogger(__name__)

DEFAULT_LIMIT_PER_SLOT = 3
DEFAULT_SEARCH_LIMIT = 5


class Mission(str, Enum):
    """Style/occasion profile that decides which slots an outfit needs"""

    SMART_CASUAL = "smart_casual"
    BUSINESS_CASUAL = "business_casual"
    OUTDOOR_RAIN = "outdoor_rain"

    @classmethod
    def parse(cls, value: "Mission | str | None") -> "Mission":
        """Case-insensitive lookup; empty and unknown values map to smart_casual."""
        if isinstance(value, Mission):
            return value
        if value is None:
            return cls.SMART_CASUAL
        if not isinstance(value, str):
            raise ValueError(f"mission must be a string, got {type(value).__name__}")
        normalized = value.strip().lower()
        if not normalized:
            return cls.SMART_CASUAL
        try:
            return cls(normalized)
        except ValueError:
            logger.warning("Unknown mission %r, using %s", value, cls.SMART_CASUAL.value)
            return cls.SMART_CASUAL


class Slot(str, Enum):
    """Garment category an outfit needs filled"""

    TOP = "top"
    BOTTOM = "bottom"
    SHOES = "shoes"
    OUTERWEAR = "outerwear"

    @classmethod
    def parse(cls, value: "Slot | str") -> "Slot":
        """Normalize a slot string ("Top " -> top). Raises ValueError if unknown."""
        if isinstance(value, Slot):
            return value
        if not isinstance(value, str):
            raise ValueError(f"slot must be a string, got {type(value).__name__}")
        normalized = value.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"unknown slot {value!r} (expected one of: {allowed})") from None

    @classmethod
    def parse_optional(cls, value: Any) -> "Slot | None":
        """Slot from stored data; anything unrecognized means unclassified."""
        if value is None or value == "":
            return None
        try:
            return cls.parse(value)
        except ValueError:
            return None


def _positive_or_none(value: float | int | None) -> float | int | None:
    # runs after coercion: 0 and negatives on the wire ("0" included) mean "no constraint"
    if value is None or value <= 0:
        return None
    return value


class Hit(BaseSchema):
    product_id: str = Field(..., description="Product ID")
    slot: Slot | None = Field(default=None, description="Product slot (null if unclassified)")
    title: str = Field(default="", description="Display title")
    thumbnail: str = Field(default="", description="Thumbnail URL")
    eco_score: int = Field(default=0, description="Eco score (0 = unknown)")
    price_gbp: float = Field(default=0.0, description="Price in GBP")
    distance: float = Field(..., description="Vector distance, rounded to 2 decimals")
    similarity: float = Field(..., description="exp(-distance) * 100")
    reason: str = Field(default="", description="Why this hit was recommended")


class SlotResult(BaseSchema):
    slot: Slot = Field(..., description="Missing slot")
    hits: list[Hit] = Field(default_factory=list, description="Hits, closest first")
    reason: str | None = Field(default=None, description="Why nothing matched")

    @field_validator("hits", mode="before")
    @classmethod
    def _null_hits_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class OutfitRequest(BaseSchema):
    mission: Mission = Field(default=Mission.SMART_CASUAL, description="Shopping mission")
    budget_gbp: float | None = Field(
        default=None, description="Total add-on budget in GBP (null/0 = unconstrained)"
    )
    min_eco_score: int | None = Field(
        default=None, description="Minimum eco score (null/0 = no floor)"
    )
    cart_slots: list[Slot] = Field(default_factory=list, description="Slots already in the cart")
    limit_per_slot: int = Field(
        default=DEFAULT_LIMIT_PER_SLOT, description="Hits per slot (<= 0 means default)"
    )

    @field_validator("mission", mode="before")
    @classmethod
    def _parse_mission(cls, value: Any) -> Mission:
        return Mission.parse(value)

    @field_validator("budget_gbp", "min_eco_score", mode="after")
    @classmethod
    def _unconstrained_as_none(cls, value: float | int | None) -> float | int | None:
        return _positive_or_none(value)

    @field_validator("cart_slots", mode="before")
    @classmethod
    def _parse_cart_slots(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        return [Slot.parse(v) for v in value]

    @field_validator("limit_per_slot", mode="before")
    @classmethod
    def _null_limit(cls, value: Any) -> Any:
        return DEFAULT_LIMIT_PER_SLOT if value is None else value

    @field_validator("limit_per_slot", mode="after")
    @classmethod
    def _default_limit(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_LIMIT_PER_SLOT


class OutfitResponse(BaseSchema):
    missing_slots: list[Slot] = Field(default_factory=list, description="Missing slots")
    results: list[SlotResult] = Field(default_factory=list, description="Per-slot results")


class SearchRequest(BaseSchema):
    query: str = Field(..., min_length=1, description="Free text query")
    limit: int = Field(default=DEFAULT_SEARCH_LIMIT, description="Max hits (<= 0 means default)")
    max_price_gbp: float | None = Field(default=None, description="Price ceiling (null/0 = none)")
    min_eco_score: int | None = Field(default=None, description="Eco floor (null/0 = none)")
    slot: Slot | None = Field(default=None, description="Restrict to one slot")

    @field_validator("max_price_gbp", "min_eco_score", mode="after")
    @classmethod
    def _unconstrained_as_none(cls, value: float | int | None) -> float | int | None:
        return _positive_or_none(value)

    @field_validator("slot", mode="before")
    @classmethod
    def _parse_slot(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return Slot.parse(value)

    @field_validator("limit", mode="before")
    @classmethod
    def _null_limit(cls, value: Any) -> Any:
        return DEFAULT_SEARCH_LIMIT if value is None else value

    @field_validator("limit", mode="after")
    @classmethod
    def _default_limit(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_SEARCH_LIMIT


class SearchResponse(BaseSchema):
    hits: list[Hit] = Field(default_factory=list, description="Hits, closest first")


class ExplainResponse(BaseSchema):
    bullets: list[str] = Field(default_factory=list, description="Up to 5 short bullets")
