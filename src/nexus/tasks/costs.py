"""Task cost catalog.

These values MUST match the credit costs shown in the studio UI.
"""

from __future__ import annotations

DEFAULT_TASK_TYPE = "chat_message"
DEFAULT_AI_MODE = "balanced"

TASK_COSTS: dict[str, int] = {
    "chat_message": 1,
    "project_generation": 10,
    "script_generation": 5,
    "ui_generation": 3,
    "asset_generation": 2,
}

AI_MODE_MULTIPLIERS: dict[str, int] = {
    "fast": 1,
    "balanced": 1,
    "pro": 2,
    "ultra": 2,
}


def compute_task_cost(
    task_type: str,
    ai_mode: str | None = None,
    *,
    user_id: str | None = None,
    unmetered_user_ids: list[str] | None = None,
) -> int:
    """Credits charged for one task of `task_type` in `ai_mode`.

    Unknown task types are priced as a chat message and unknown modes as
    balanced. Unmetered users always get 0.
    """
    if user_id is not None and unmetered_user_ids and user_id in unmetered_user_ids:
        return 0
    base = TASK_COSTS.get(task_type, TASK_COSTS[DEFAULT_TASK_TYPE])
    multiplier = AI_MODE_MULTIPLIERS.get(ai_mode or DEFAULT_AI_MODE, AI_MODE_MULTIPLIERS[DEFAULT_AI_MODE])
    return base * multiplier


def cost_catalog() -> dict:
    """Catalog payload for clients: base costs and mode multipliers."""
    return {
        "task_costs": dict(TASK_COSTS),
        "ai_mode_multipliers": dict(AI_MODE_MULTIPLIERS),
        "default_task_type": DEFAULT_TASK_TYPE,
        "default_ai_mode": DEFAULT_AI_MODE,
    }
