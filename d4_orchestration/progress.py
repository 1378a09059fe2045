"""
Audit progress accounting

Step 1 is discovery, steps 2..n+1 are pages, n+2 is vision and n+3 scoring.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from core.utils import page_label, round_half_up

MAX_SCANNING_PERCENTAGE = 85
VISION_PERCENTAGE = 88
SCORING_PERCENTAGE = 95


@dataclass(frozen=True)
class ProgressSnapshot:
    current_step: int
    total_steps: int
    percentage: int
    label: str
    failure_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "currentStep": self.current_step,
            "totalSteps": self.total_steps,
            "percentage": self.percentage,
            "label": self.label,
        }
        if self.failure_reason:
            data["failureReason"] = self.failure_reason
        return data


def no_sitemap_progress() -> ProgressSnapshot:
    return ProgressSnapshot(1, 1, 100, "complete", failure_reason="NO_SITEMAP")


class ProgressTracker:
    """Counts finished pages; `current_step` never goes backwards"""

    def __init__(self, page_count: int):
        self.page_count = page_count
        self.total_steps = page_count + 3
        self.scanned = 0
        self.current_step = 1
        self._lock = asyncio.Lock()

    def discovery(self) -> ProgressSnapshot:
        return ProgressSnapshot(1, self.total_steps, 5, "discovery")

    async def page_done(
        self, url: str, publish: Optional[Callable[[ProgressSnapshot, int], Awaitable[None]]] = None
    ) -> ProgressSnapshot:
        """
        Count one finished page

        `publish` receives the snapshot and the scanned count while the lock
        is held, so stored progress is written in step order.
        """
        async with self._lock:
            self.scanned += 1
            self.current_step = max(self.current_step, 1 + self.scanned)
            percentage = min(MAX_SCANNING_PERCENTAGE, round_half_up(self.current_step / self.total_steps * 100))
            snapshot = ProgressSnapshot(self.current_step, self.total_steps, percentage, page_label(url))
            if publish is not None:
                await publish(snapshot, self.scanned)
            return snapshot

    def vision(self) -> ProgressSnapshot:
        self.current_step = max(self.current_step, self.page_count + 2)
        return ProgressSnapshot(self.current_step, self.total_steps, VISION_PERCENTAGE, "vision")

    def scoring(self) -> ProgressSnapshot:
        self.current_step = max(self.current_step, self.page_count + 3)
        return ProgressSnapshot(self.current_step, self.total_steps, SCORING_PERCENTAGE, "scoring")

    def complete(self) -> ProgressSnapshot:
        self.current_step = self.total_steps
        return ProgressSnapshot(self.total_steps, self.total_steps, 100, "complete")
