from collections.abc import Iterable

from outfit_agent.outfit.schemas import Mission, Slot

# Slots each mission needs, in canonical order
MISSION_SLOTS: dict[Mission, tuple[Slot, ...]] = {
    Mission.SMART_CASUAL: (Slot.TOP, Slot.BOTTOM, Slot.SHOES),
    Mission.BUSINESS_CASUAL: (Slot.TOP, Slot.BOTTOM, Slot.SHOES),
    Mission.OUTDOOR_RAIN: (Slot.OUTERWEAR, Slot.BOTTOM, Slot.SHOES),
}


def required_slots(mission: Mission | str | None) -> list[Slot]:
    """Slots the mission needs. Unknown missions use the smart_casual table."""
    return list(MISSION_SLOTS[Mission.parse(mission)])


def missing_slots(required: Iterable[Slot], present: Iterable[Slot | str]) -> list[Slot]:
    """Required slots not in the cart, in required order.

    Cart entries are compared by membership, so duplicates collapse. Entries
    that are not a known slot cannot fill a required slot and are ignored here;
    the request schema rejects them before this point.
    """
    present_set = {Slot.parse_optional(s) for s in present}
    missing: list[Slot] = []
    for slot in required:
        if slot not in present_set and slot not in missing:
            missing.append(slot)
    return missing
