"""
Nightly batch window and sweep.

The gateway has no timer of its own; an external caller (cron, a periodic
HTTP ping) invokes run_if_in_window() and the sweep only runs inside the
configured window.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .batch import BatchSubmitter
from .clock import Clock, SystemClock
from .work_items import is_batch_eligible, merge_candidates
from ai_gateway.config.loader import GatewayConfig
from ai_gateway.storage.models import BatchJob, Snapshot, WorkUnit
from ai_gateway.storage.repository import SnapshotStore

logger = logging.getLogger(__name__)

DEFERRAL_LABELS = ("later", "next")


class SweepStatus(Enum):
    """Outcome of a sweep."""
    SUBMITTED = "submitted"
    NO_ELIGIBLE_WORK = "no_eligible_work"
    OUTSIDE_WINDOW = "outside_window"


@dataclass(frozen=True)
class SweepResult:
    """What a sweep did. `job` is set only when something was submitted."""
    status: SweepStatus
    job: Optional[BatchJob] = None

    @property
    def submitted(self) -> bool:
        return self.status == SweepStatus.SUBMITTED


def parse_time_of_day(value: str) -> Optional[Tuple[int, int]]:
    """Parse "HH:MM" into (hour, minute); None if it isn't two integers."""
    parts = (value or "").split(":")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def in_window(now: datetime, start: str, end: str) -> bool:
    """Whether `now` falls in the [start, end] time-of-day window.

    A window whose start is after its end crosses midnight. If either bound
    fails to parse the window is treated as always open.
    """
    start_hm = parse_time_of_day(start)
    end_hm = parse_time_of_day(end)
    if start_hm is None or end_hm is None:
        return True

    minutes = now.hour * 60 + now.minute
    start_minutes = start_hm[0] * 60 + start_hm[1]
    end_minutes = end_hm[0] * 60 + end_hm[1]

    if start_minutes <= end_minutes:
        return start_minutes <= minutes <= end_minutes
    return minutes >= start_minutes or minutes <= end_minutes


def has_deferral_label(
    unit: WorkUnit,
    snapshot: Snapshot,
    labels: Sequence[str] = DEFERRAL_LABELS
) -> bool:
    tag_labels = {tag.id: tag.label.lower() for tag in snapshot.tags}
    return any(tag_labels.get(tag_id, "") in labels for tag_id in unit.tags)


class NightWindowScheduler:
    """Selects deferred low-priority work and hands it to the BatchSubmitter."""

    def __init__(
        self,
        config: GatewayConfig,
        store: SnapshotStore,
        submitter: BatchSubmitter,
        clock: Optional[Clock] = None
    ):
        self.config = config
        self.store = store
        self.submitter = submitter
        self.clock = clock or SystemClock()

    def in_window(self) -> bool:
        return in_window(
            self.clock.now(), self.config.batch_window_start, self.config.batch_window_end
        )

    def select_sweep_candidates(self) -> List[str]:
        snapshot = self.store.load()
        candidates = [
            unit.id for unit in snapshot.work_units
            if is_batch_eligible(unit) and has_deferral_label(unit, snapshot)
        ]
        return candidates[:self.config.batch_max_tasks]

    def run_sweep(self) -> SweepResult:
        """Submit eligible units tagged later/next, up to batch_max_tasks.

        Does not check the window; see run_if_in_window().
        """
        unit_ids = self.select_sweep_candidates()
        if not unit_ids:
            logger.info("Night sweep found no eligible work")
            return SweepResult(SweepStatus.NO_ELIGIBLE_WORK)

        job = self.submitter.submit(unit_ids)
        logger.info("Night sweep submitted %d units as batch %s", len(unit_ids), job.batch_id)
        return SweepResult(SweepStatus.SUBMITTED, job)

    def run_if_in_window(self) -> SweepResult:
        if not self.in_window():
            return SweepResult(SweepStatus.OUTSIDE_WINDOW)
        return self.run_sweep()

    def queue_merge(
        self,
        max_tasks: Optional[int] = None,
        max_subitems: Optional[int] = None
    ) -> SweepResult:
        """Merge small eligible units, oldest first, into one batch regardless of labels."""
        if max_tasks is None:
            max_tasks = self.config.batch_max_tasks
        if max_subitems is None:
            max_subitems = self.config.batch_max_subitems
        units = merge_candidates(self.store.load().work_units, max_tasks, max_subitems)
        if not units:
            return SweepResult(SweepStatus.NO_ELIGIBLE_WORK)
        return SweepResult(SweepStatus.SUBMITTED, self.submitter.submit([u.id for u in units]))
