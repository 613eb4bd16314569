"""Time-of-day derivation from elapsed minutes."""

from datetime import datetime, timedelta

from saga_kernel.models.systems import TimeSnapshot
from saga_kernel.models.world import WorldState


def _bucket(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def absolute_time(anchor_iso: str, elapsed_minutes: int) -> datetime:
    anchor = datetime.fromisoformat(anchor_iso.replace("Z", "+00:00"))
    return anchor + timedelta(minutes=elapsed_minutes)


def derive_time(state: WorldState) -> TimeSnapshot:
    elapsed = state.systems.elapsed_minutes
    config = state.systems.time_config
    total_minutes = config.start_hour * 60 + elapsed
    current_hour = (total_minutes // 60) % 24

    return TimeSnapshot(
        elapsed_minutes=elapsed,
        current_hour=current_hour,
        current_day=total_minutes // (24 * 60) + 1,
        time_of_day=_bucket(current_hour),
        absolute_iso=absolute_time(config.anchor_iso, elapsed).isoformat().replace("+00:00", "Z"),
    )
