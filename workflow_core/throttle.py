"""
Trigger throttling semantics.

Defines what a TriggerThrottleConfig means so every executor applies it the
same way. Nothing here stores counters: callers keep ExecutionRecords
wherever they like and pass the current one in.

Semantics:
- `scope = none` or `enabled = false`: always execute.
- Counter keyed by (trigger event id, identity key) where the identity comes
  from `target`: browser id, user id, or both combined. A `user` target with
  no authenticated user falls back to the browser id.
- Counter windows: `session` resets when the session id changes, `day` and
  `week` are rolling windows of 24 hours / 7 days opened by the first
  execution, `lifetime` never resets.
- `maxExecutions` (default 1) caps executions per window.
- `cooldownMinutes` additionally requires that much time since this key's
  last execution.
- A record created before `resetAt`, or tagged with a version lower than the
  config's `version`, is treated as absent. `resetAt` is in epoch
  milliseconds (the editor stamps it with `Date.now()`); record times are
  Unix seconds.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .models import ThrottleScope, ThrottleTarget, TriggerThrottleConfig, WorkflowModel

ROLLING_WINDOWS: dict[ThrottleScope, timedelta] = {
    ThrottleScope.DAY: timedelta(days=1),
    ThrottleScope.WEEK: timedelta(days=7),
}


class ExecutionRecord(WorkflowModel):
    """What an executor remembers about one trigger event for one identity key."""
    trigger_event_id: str
    key: str
    count: int = 0
    window_started_at: float          # Unix seconds
    last_executed_at: float           # Unix seconds
    recorded_at: float                # Unix seconds, when the record was created
    session_id: Optional[str] = None
    version: Optional[int] = None


@dataclass
class ThrottleDecision:
    allowed: bool
    reason: str


def throttle_key(
    target: ThrottleTarget,
    browser_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> str:
    """Identity key the execution counter is tracked under."""
    browser = f"browser:{browser_id or 'unknown'}"
    if target == ThrottleTarget.BROWSER or not user_id:
        return browser
    if target == ThrottleTarget.USER:
        return f"user:{user_id}"
    return f"user:{user_id}|{browser}"


def is_record_current(record: Optional[ExecutionRecord], config: TriggerThrottleConfig) -> bool:
    """False when the record is missing or invalidated by `reset_at` / `version`."""
    if record is None:
        return False
    if config.reset_at is not None and record.recorded_at * 1000 < config.reset_at:
        return False
    if config.version is not None and (record.version or 0) < config.version:
        return False
    return True


def window_expired(
    config: TriggerThrottleConfig,
    record: ExecutionRecord,
    now: float,
    session_id: Optional[str] = None,
) -> bool:
    """Whether the record's counter window has closed, so the count restarts at zero."""
    if config.scope == ThrottleScope.SESSION:
        return record.session_id != session_id
    if config.scope in ROLLING_WINDOWS:
        period = ROLLING_WINDOWS[config.scope].total_seconds()
        return now - record.window_started_at >= period
    return False


def check_execution(
    config: Optional[TriggerThrottleConfig],
    record: Optional[ExecutionRecord],
    now: float,
    session_id: Optional[str] = None,
) -> ThrottleDecision:
    """Decide whether a trigger event may execute now for the record's identity key."""
    if config is None or config.is_unthrottled:
        return ThrottleDecision(True, "not throttled")
    if not is_record_current(record, config):
        return ThrottleDecision(True, "no execution recorded")

    if config.cooldown_minutes:
        elapsed = now - record.last_executed_at
        if elapsed < config.cooldown_minutes * 60:
            return ThrottleDecision(False, "cooldown active")

    if window_expired(config, record, now, session_id):
        return ThrottleDecision(True, f"{config.scope.value} window reset")
    if record.count >= config.effective_max_executions:
        return ThrottleDecision(False, f"limit of {config.effective_max_executions} reached for {config.scope.value}")
    return ThrottleDecision(True, "under limit")


def record_execution(
    trigger_event_id: str,
    key: str,
    config: Optional[TriggerThrottleConfig],
    record: Optional[ExecutionRecord],
    now: float,
    session_id: Optional[str] = None,
) -> ExecutionRecord:
    """Return the record that results from executing the trigger event now."""
    version = config.version if config else None
    fresh = (
        config is None
        or not is_record_current(record, config)
        or window_expired(config, record, now, session_id)
    )
    if fresh:
        return ExecutionRecord(
            trigger_event_id=trigger_event_id,
            key=key,
            count=1,
            window_started_at=now,
            last_executed_at=now,
            recorded_at=now,
            session_id=session_id,
            version=version,
        )
    return record.model_copy(update={
        "count": record.count + 1,
        "last_executed_at": now,
        "session_id": session_id,
    })
