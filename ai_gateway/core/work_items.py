"""
Batch eligibility and work item construction.

A work unit can be deferred into a provider batch only when it is flagged
for fan-out, sits in one of the two lowest priority tiers and has at least
one sub-item. Its sub-items are then flattened into WorkItems, optionally
merged into chunks to keep the submission file small.
"""

from typing import Dict, List, Sequence

from ai_gateway.storage.models import WorkItem, WorkUnit

# Two lowest tiers of the P0-P3 scale and of the high/medium/low scale
LOW_PRIORITY_TIERS = frozenset({"p2", "p3", "medium", "low"})


def is_low_priority(priority: str) -> bool:
    return (priority or "").strip().lower() in LOW_PRIORITY_TIERS


def eligibility_report(unit: WorkUnit) -> Dict[str, bool]:
    """The three batch-eligibility conditions, individually."""
    return {
        "fan_out": bool(unit.fan_out),
        "low_priority": is_low_priority(unit.priority),
        "has_subitems": unit.subitem_count > 0,
    }


def is_batch_eligible(unit: WorkUnit) -> bool:
    """True only if all eligibility conditions hold."""
    return all(eligibility_report(unit).values())


def build_work_items(unit: WorkUnit, chunk_size: int = 1) -> List[WorkItem]:
    """Flatten a unit's sub-items into WorkItems.

    Definition-of-done entries are used when present, the checklist
    otherwise. With chunk_size > 1, consecutive sub-items are merged into one
    item per chunk: ids joined by "_", texts joined by newline.

    Args:
        unit: Work unit to flatten
        chunk_size: Maximum sub-items per WorkItem

    Returns:
        WorkItems in sub-item order
    """
    source = unit.definition_of_done or unit.checklist

    def make(item_id: str, text: str) -> WorkItem:
        return WorkItem(
            id=item_id,
            text=text,
            unit_id=unit.id,
            unit_title=unit.title,
            priority=unit.priority,
            description=unit.description or "",
            notes=unit.notes or "",
        )

    if chunk_size <= 1:
        return [make(item.id, item.text) for item in source]

    chunks = []
    for start in range(0, len(source), chunk_size):
        subset = source[start:start + chunk_size]
        chunks.append(make(
            "_".join(item.id for item in subset),
            "\n".join(item.text for item in subset),
        ))
    return chunks


def merge_candidates(
    units: Sequence[WorkUnit],
    max_tasks: int,
    max_subitems: int
) -> List[WorkUnit]:
    """Small eligible units, least recently updated first, capped to max_tasks."""
    small = [
        unit for unit in units
        if is_batch_eligible(unit) and unit.subitem_count <= max_subitems
    ]
    small.sort(key=lambda unit: unit.updated_at)
    return small[:max_tasks]
