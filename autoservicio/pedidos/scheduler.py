"""Scheduled catalog reloads."""

from __future__ import annotations

import logging

from .catalog import CatalogProvider

logger = logging.getLogger(__name__)


class CatalogRefreshScheduler:
    """Reloads the product catalog on a cron schedule.

    Uses APScheduler for cron-based scheduling. A failed reload keeps the
    previous catalog snapshot in service.
    """

    def __init__(self, provider: CatalogProvider, schedule: str = "*/5 * * * *") -> None:
        """Initialize scheduler for a catalog provider.

        Args:
            provider: CatalogProvider whose source file is reloaded.
            schedule: Five-field cron expression.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler es necesario: pip install 'autoservicio-pedidos[scheduler]'"
            ) from None

        self._provider = provider
        self._schedule = schedule
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    @classmethod
    def from_config(cls, provider: CatalogProvider, config) -> CatalogRefreshScheduler:
        return cls(provider, schedule=config.catalog.refresh_schedule)

    def setup_jobs(self) -> None:
        """Register the reload job."""
        trigger = self._parse_cron(self._schedule)
        self._scheduler.add_job(
            self._job_reload_catalog,
            trigger=trigger,
            id="reload_catalog",
            name="Recarga de catalogo",
            replace_existing=True,
        )
        logger.info("Trabajo de recarga registrado: %s", self._schedule)

    def start(self) -> None:
        """Start the scheduler. Needs a running asyncio event loop."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Planificador iniciado")

    def stop(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Planificador detenido")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time) if getattr(job, "next_run_time", None) else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"Expresion cron invalida: {expr}")

    async def _job_reload_catalog(self) -> None:
        logger.info("Recargando catalogo...")
        try:
            catalog = self._provider.reload()
            logger.info("Catalogo recargado: %d productos", len(catalog))
        except Exception:
            logger.exception("Error recargando el catalogo, se mantiene el anterior")
