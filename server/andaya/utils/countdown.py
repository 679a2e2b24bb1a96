"""Countdown and grace-period display state for a reservation."""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from andaya.config import settings
from andaya.utils.dates import as_utc

CLOSED_STATUSES = ("completed", "cancelled", "canceled", "rejected")


@dataclass
class Countdown:
    time_remaining: str
    is_overdue: bool
    is_in_grace_period: bool
    overage_time: str
    status: str  # upcoming, active, grace, overdue, completed
    percent_complete: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _format_span(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def reservation_countdown(
    end_at: Optional[datetime],
    grace_minutes: Optional[int] = None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Countdown:
    """
    Compute the countdown shown for a reservation at ``now``.

    - Before ``end_at``: time remaining (``2d 3h 15m``, ``3h 15m`` or ``15m``)
    - Within the grace period: minutes of grace left, rounded up
    - After the grace period: ``Vencido`` plus the overage (``+1h 5m``)
    """
    if grace_minutes is None:
        grace_minutes = settings.DEFAULT_GRACE_MINUTES

    if hasattr(status, "value"):
        status = status.value

    if end_at is None or status in CLOSED_STATUSES:
        return Countdown("--", False, False, "--", "completed", 100)

    now = as_utc(now) if now else datetime.now(timezone.utc)
    end_at = as_utc(end_at)
    grace_end = end_at + timedelta(minutes=grace_minutes)

    if end_at > now:
        return Countdown(
            time_remaining=_format_span(end_at - now),
            is_overdue=False,
            is_in_grace_period=False,
            overage_time="--",
            status="active" if status == "active" else "upcoming",
            percent_complete=0,
        )

    if grace_end > now:
        remaining = grace_end - now
        minutes = -(-remaining // timedelta(minutes=1))
        return Countdown(
            time_remaining=f"{minutes}m de gracia",
            is_overdue=False,
            is_in_grace_period=True,
            overage_time="--",
            status="grace",
            percent_complete=0,
        )

    return Countdown(
        time_remaining="Vencido",
        is_overdue=True,
        is_in_grace_period=False,
        overage_time=f"+{_format_span(now - grace_end)}",
        status="overdue",
        percent_complete=100,
    )
