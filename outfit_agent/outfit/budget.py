def allocate_budget(total_budget: float | None, missing_count: int) -> float | None:
    """Split the total budget equally across the missing slots.

    An unconstrained budget (``None``, or a legacy 0) gives ``None``, which the
    search reads as "no price ceiling". No rounding happens here; only display
    strings round.
    """
    if missing_count <= 0:
        raise ValueError("missing_count must be positive")
    if total_budget is None or total_budget <= 0:
        return None
    return total_budget / missing_count
