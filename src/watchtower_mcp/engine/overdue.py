"""Subscription overdue escalation.

Stages by whole days past the due date:
    0: not overdue (< 1 day)
    1: D+1 .. D+2
    2: D+3 .. D+9
    3: D+10 and later (chronic; reminded weekly)

Stages 1-2 notify once on entry. Stage 3 notifies on entry and then at
most once every REMINDER_INTERVAL_DAYS.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from watchtower_mcp.utils.time import days_between

logger = logging.getLogger(__name__)

# (minimum days overdue, stage), checked from the top
STAGE_THRESHOLDS: tuple[tuple[int, int], ...] = ((10, 3), (3, 2), (1, 1))
CHRONIC_STAGE = 3
REMINDER_INTERVAL_DAYS = 7
BILLING_PERIOD = timedelta(days=30)


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    PAUSED = "PAUSED"
    REMOVED = "REMOVED"


# Statuses the overdue check scans; the rest are left alone
SCANNED_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.OVERDUE)


@dataclass(frozen=True)
class Subscription:
    user_id: str
    email: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    due_at: datetime | None = None
    overdue_stage: int = 0
    last_overdue_notified_at: datetime | None = None
    last_paid_at: datetime | None = None


@dataclass(frozen=True)
class OverdueNotification:
    title: str
    body: str
    metadata: dict[str, Any]


@dataclass(frozen=True)
class OverdueDecision:
    """What the caller persists for one subscription after a check."""

    user_id: str
    status: SubscriptionStatus
    stage: int
    days_overdue: int
    changed: bool
    notification: OverdueNotification | None = None
    last_overdue_notified_at: datetime | None = None

    @property
    def notify(self) -> bool:
        return self.notification is not None


@dataclass(frozen=True)
class OverdueCheckResult:
    scanned: int
    flagged: int
    notifications: int
    decisions: list[OverdueDecision] = field(default_factory=list)


def overdue_stage(due_at: datetime, now: datetime) -> int:
    """Escalation stage 0-3 for whole days elapsed since due_at."""
    days = days_between(due_at, now)
    for min_days, stage in STAGE_THRESHOLDS:
        if days >= min_days:
            return stage
    return 0


def should_notify(
    previous_stage: int,
    new_stage: int,
    last_notified_at: datetime | None,
    now: datetime,
) -> bool:
    """
    Decide whether a check should send an overdue notification.

    True when the stage escalated, or when at the chronic stage and no
    reminder went out in the last REMINDER_INTERVAL_DAYS.
    """
    if new_stage > previous_stage:
        return True
    if new_stage < CHRONIC_STAGE:
        return False
    if last_notified_at is None:
        return True
    return days_between(last_notified_at, now) >= REMINDER_INTERVAL_DAYS


def evaluate_overdue(sub: Subscription, now: datetime) -> OverdueDecision | None:
    """
    Evaluate one subscription for the overdue check.

    Args:
        sub: Current persisted subscription state
        now: Check time

    Returns:
        OverdueDecision, or None if the subscription is not scanned
        (status outside ACTIVE/OVERDUE, or no due date)
    """
    if sub.status not in SCANNED_STATUSES or sub.due_at is None:
        return None

    days = days_between(sub.due_at, now)
    stage = overdue_stage(sub.due_at, now)

    if stage == 0:
        # Back in good standing: clear the overdue flag and stage, no notification
        recovered = sub.status is SubscriptionStatus.OVERDUE or sub.overdue_stage != 0
        return OverdueDecision(
            user_id=sub.user_id,
            status=SubscriptionStatus.ACTIVE,
            stage=0,
            days_overdue=max(days, 0),
            changed=recovered,
            last_overdue_notified_at=sub.last_overdue_notified_at,
        )

    notification = None
    notified_at = sub.last_overdue_notified_at
    if should_notify(sub.overdue_stage, stage, sub.last_overdue_notified_at, now):
        notification = OverdueNotification(
            title=f"Subscription overdue: {sub.email}",
            body=f"{sub.email} is overdue by {days} day(s). Stage D+{days}.",
            metadata={
                "user_id": sub.user_id,
                "stage": stage,
                "due_at": sub.due_at.isoformat(),
            },
        )
        notified_at = now

    if stage != sub.overdue_stage:
        logger.debug(f"Subscription {sub.user_id}: stage {sub.overdue_stage} -> {stage}")

    return OverdueDecision(
        user_id=sub.user_id,
        status=SubscriptionStatus.OVERDUE,
        stage=stage,
        days_overdue=days,
        changed=(
            sub.status is not SubscriptionStatus.OVERDUE
            or stage != sub.overdue_stage
            or notification is not None
        ),
        notification=notification,
        last_overdue_notified_at=notified_at,
    )


def run_overdue_check(subs: Iterable[Subscription], now: datetime) -> OverdueCheckResult:
    """Evaluate every scanned subscription and count flags and notifications."""
    decisions: list[OverdueDecision] = []
    scanned = flagged = notifications = 0

    for sub in subs:
        decision = evaluate_overdue(sub, now)
        if decision is None:
            continue
        scanned += 1
        decisions.append(decision)
        if decision.stage > 0:
            flagged += 1
        if decision.notify:
            notifications += 1

    return OverdueCheckResult(
        scanned=scanned,
        flagged=flagged,
        notifications=notifications,
        decisions=decisions,
    )


def mark_paid(sub: Subscription, now: datetime) -> Subscription:
    """Record a payment: active again, next due one billing period out."""
    return replace(
        sub,
        status=SubscriptionStatus.ACTIVE,
        last_paid_at=now,
        due_at=now + BILLING_PERIOD,
        overdue_stage=0,
        last_overdue_notified_at=None,
    )
