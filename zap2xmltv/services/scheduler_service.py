import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from zap2xmltv.config import GuideSettings
from zap2xmltv.services.guide_pipeline_service import build_guide


logger = logging.getLogger(__name__)

JOB_ID = "guide_build"


class GuideScheduler:
    """Scheduler for periodic guide builds"""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None
        self.settings: GuideSettings | None = None
        self.last_result: dict | None = None

    async def _build_job(self) -> None:
        """Background job that runs one guide build"""
        logger.info("Scheduled guide build triggered")
        if self.settings is None:
            logger.error("Scheduler has no settings; skipping build")
            return
        try:
            self.last_result = await build_guide(self.settings)
            if self.last_result.get("status") == "failed":
                logger.error(f"Scheduled build failed: {self.last_result['error']}")
        except Exception as e:
            logger.error(f"Exception in scheduled build: {e}", exc_info=True)

    def start(self, settings: GuideSettings) -> None:
        """Start the scheduler with the guide build job"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        try:
            trigger = CronTrigger.from_crontab(settings.fetch_cron)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", settings.fetch_cron, exc)
            raise

        self.settings = settings
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._build_job,
            trigger=trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=settings.fetch_misfire_grace_sec
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next build: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
            self.scheduler = None

    def is_running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled build time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None


guide_scheduler = GuideScheduler()
