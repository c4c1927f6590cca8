"""Context reminder appended to every player request.

The continuation token carries the model's memory, but small models drift.
The reminder restates what the game knows so the next response stays
consistent. Output must be deterministic for identical inputs.
"""

from collections.abc import Sequence

from role_game.models import InventoryItem, Location, Npc, StoryEvent, StoryFact


def build_context_summary(
    current_location: Location | None,
    inventory: Sequence[InventoryItem],
    npcs_here: Sequence[Npc],
    recent_events: Sequence[StoryEvent],
    facts: Sequence[StoryFact],
) -> str:
    """Render game memory into a bracketed reminder, or "" if nothing to say.

    Section order: critical facts, major facts, location, NPCs present,
    inventory, recent events.
    """
    lines: list[str] = []

    critical = [f.fact for f in facts if f.importance == "critical"]
    if critical:
        lines.append("CRITICAL FACTS (never contradict): " + "; ".join(critical))

    major = [f.fact for f in facts if f.importance == "major"]
    if major:
        lines.append("Important facts: " + "; ".join(major))

    if current_location is not None:
        lines.append(f"Current location: {current_location.name}")

    if npcs_here:
        lines.append("Characters present: " + ", ".join(n.name for n in npcs_here))

    if inventory:
        lines.append("Inventory: " + ", ".join(i.name for i in inventory))

    if recent_events:
        lines.append("Recent events: " + "; ".join(e.description for e in recent_events))

    if not lines:
        return ""
    return "\n\n[STORY CONTEXT - stay consistent with this]\n" + "\n".join(lines)
