"""
Promotion Scheduler

Fixed interval sweep that re-applies active campaigns whose window is
open and deactivates active campaigns whose window has closed.

Assumes a single scheduler per deployment. Running several replicas
needs leader election or a distributed lock around tick().
"""

import asyncio
import logging
from typing import Optional

from .clock import SystemClock
from .models import SchedulerTickResult
from .promotion_engine import PromotionEngine
from .protocols import CampaignRepositoryProtocol, ClockProtocol

logger = logging.getLogger(__name__)


class PromotionScheduler:
    """Periodic promotion sweep with an explicit cancellation handle"""

    def __init__(
        self,
        engine: PromotionEngine,
        repository: CampaignRepositoryProtocol,
        interval_seconds: float = 60,
        clock: Optional[ClockProtocol] = None,
        run_on_start: bool = True,
    ):
        self.engine = engine
        self.repository = repository
        self.interval_seconds = interval_seconds
        self.clock = clock or SystemClock()
        self.run_on_start = run_on_start
        self._task: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()
        self.last_result: Optional[SchedulerTickResult] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> SchedulerTickResult:
        """
        Run one sweep.

        Campaigns are processed one at a time; a failure on one campaign is
        logged and recorded without stopping the rest of the sweep.
        """
        async with self._tick_lock:
            now = self.clock.now()
            result = SchedulerTickResult(started_at=now)

            for campaign in await self.repository.list_due_campaigns(now):
                try:
                    await self.engine.activate(campaign.campaign_id, now=now)
                    result.applied.append(campaign.campaign_id)
                except Exception as e:
                    logger.error(
                        f"Failed to apply promotion {campaign.campaign_id}: {e}",
                        exc_info=True,
                    )
                    result.failed.append(campaign.campaign_id)

            for campaign in await self.repository.list_expired_campaigns(now):
                try:
                    await self.engine.deactivate(campaign.campaign_id, now=now)
                    result.expired.append(campaign.campaign_id)
                except Exception as e:
                    logger.error(
                        f"Failed to expire promotion {campaign.campaign_id}: {e}",
                        exc_info=True,
                    )
                    result.failed.append(campaign.campaign_id)

            result.finished_at = self.clock.now()
            self.last_result = result

            if result.applied or result.expired or result.failed:
                logger.info(
                    f"Promotion sweep: applied={len(result.applied)} "
                    f"expired={len(result.expired)} failed={len(result.failed)}"
                )
            return result

    async def _run(self) -> None:
        if not self.run_on_start:
            await asyncio.sleep(self.interval_seconds)

        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Promotion sweep failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        """Start the periodic sweep on the running loop; returns the task handle"""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="promotion-scheduler"
        )
        logger.info(f"Promotion scheduler started (interval={self.interval_seconds}s)")
        return self._task

    async def stop(self) -> None:
        """Cancel the sweep and wait for it to finish"""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Promotion scheduler stopped")


__all__ = ["PromotionScheduler"]
