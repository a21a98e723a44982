"""
Editing the start node's ordered list of trigger events.

`seq` defines evaluation/display order. Appending uses max(seq) + 1; any
reorder reassigns seq densely as 0..n-1 in the new order.
"""

from typing import Optional, Sequence

from .errors import DuplicateTriggerError, TriggerNotFoundError
from .models import TriggerEventConfig, TriggerThrottleConfig, generate_trigger_id


def sorted_trigger_events(events: Sequence[TriggerEventConfig]) -> list[TriggerEventConfig]:
    return sorted(events, key=lambda e: e.seq)


def resequence(events: Sequence[TriggerEventConfig]) -> list[TriggerEventConfig]:
    """Copies of `events`, in the given order, with seq = 0..n-1."""
    return [e.model_copy(update={"seq": i}) for i, e in enumerate(events)]


def add_trigger_event(
    events: Sequence[TriggerEventConfig],
    item_type: str,
    trigger_event: str,
    throttle: Optional[TriggerThrottleConfig] = None,
) -> list[TriggerEventConfig]:
    """Append a trigger event. The same (item type, event) pair can only appear once."""
    if not item_type or not trigger_event:
        raise ValueError("Both item type and trigger event are required")
    if any(e.item_type == item_type and e.trigger_event == trigger_event for e in events):
        raise DuplicateTriggerError(f"Trigger {item_type}/{trigger_event} already exists")

    next_seq = max((e.seq for e in events), default=-1) + 1
    new_event = TriggerEventConfig(
        id=generate_trigger_id(),
        item_type=item_type,
        trigger_event=trigger_event,
        seq=next_seq,
        # Only keep throttling that is switched on
        throttle=throttle if throttle is not None and throttle.enabled else None,
    )
    return [*sorted_trigger_events(events), new_event]


def remove_trigger_event(events: Sequence[TriggerEventConfig], event_id: str) -> list[TriggerEventConfig]:
    remaining = [e for e in events if e.id != event_id]
    if len(remaining) == len(events):
        raise TriggerNotFoundError(f"Trigger event not found: {event_id}")
    return sorted_trigger_events(remaining)


def update_trigger_throttle(
    events: Sequence[TriggerEventConfig],
    event_id: str,
    throttle: Optional[TriggerThrottleConfig],
) -> list[TriggerEventConfig]:
    if not any(e.id == event_id for e in events):
        raise TriggerNotFoundError(f"Trigger event not found: {event_id}")
    return [
        e.model_copy(update={"throttle": throttle}) if e.id == event_id else e
        for e in sorted_trigger_events(events)
    ]


def reorder_trigger_events(
    events: Sequence[TriggerEventConfig],
    ordered_ids: Sequence[str],
) -> list[TriggerEventConfig]:
    """Put events in the order of `ordered_ids` (which must name each event once)."""
    by_id = {e.id: e for e in events}
    if sorted(ordered_ids) != sorted(by_id):
        raise ValueError("Reorder must list every trigger event exactly once")
    return resequence([by_id[event_id] for event_id in ordered_ids])


def move_trigger_event(
    events: Sequence[TriggerEventConfig],
    event_id: str,
    new_index: int,
) -> list[TriggerEventConfig]:
    """Move one event to `new_index` (clamped) in seq order."""
    ordered = sorted_trigger_events(events)
    current = next((i for i, e in enumerate(ordered) if e.id == event_id), None)
    if current is None:
        raise TriggerNotFoundError(f"Trigger event not found: {event_id}")
    event = ordered.pop(current)
    new_index = max(0, min(new_index, len(ordered)))
    ordered.insert(new_index, event)
    return resequence(ordered)


def reset_throttles(events: Sequence[TriggerEventConfig], now_ms: float) -> list[TriggerEventConfig]:
    """
    Invalidate every execution record cached for these trigger events.

    Each throttle gets its `version` bumped (an unset version counts as 1) and
    `resetAt` set to `now_ms`, so executors treat earlier records as absent.
    Events without a throttle are returned unchanged.
    """
    reset = []
    for event in sorted_trigger_events(events):
        if event.throttle is not None:
            throttle = event.throttle.model_copy(update={
                "version": (event.throttle.version or 1) + 1,
                "reset_at": now_ms,
            })
            event = event.model_copy(update={"throttle": throttle})
        reset.append(event)
    return reset
