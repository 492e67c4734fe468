"""Daily pull of ad revenue from external reporting sources."""

import logging
from datetime import date
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.config import Settings, settings
from sitepulse.services.revenue_service import RevenueRecord, RevenueService

logger = logging.getLogger(__name__)


class RevenueSource(Protocol):
    name: str

    def is_configured(self) -> bool: ...

    async def fetch(self, day: date) -> list[RevenueRecord]: ...


class AdSenseSource:
    """Google AdSense reporting source.

    Requires the OAuth client id, client secret, refresh token and the AdSense
    account id. Until the reporting client lands this yields no rows, and
    AdSense revenue is entered through ``POST /revenue/``.
    """

    name = "adsense"

    def __init__(self, config: Settings | None = None):
        self.config = config or settings

    def is_configured(self) -> bool:
        return all(
            (
                self.config.GOOGLE_CLIENT_ID,
                self.config.GOOGLE_CLIENT_SECRET,
                self.config.GOOGLE_REFRESH_TOKEN,
                self.config.ADSENSE_ACCOUNT_ID,
            )
        )

    async def fetch(self, day: date) -> list[RevenueRecord]:
        # TODO: call the AdSense Management API reports.generate endpoint for ``day``
        logger.info("AdSense reporting client not implemented, no rows for %s", day)
        return []


def default_sources() -> list[RevenueSource]:
    return [AdSenseSource()]


class RevenueSyncJob:
    """Upserts every row reported by each configured source for one day.

    Sources are isolated: a failing source is logged and the others still run.
    """

    def __init__(self, db: AsyncSession, sources: list[RevenueSource] | None = None):
        self.db = db
        self.sources = sources if sources is not None else default_sources()

    async def run(self, day: date) -> int:
        service = RevenueService(self.db)
        upserted = 0
        for source in self.sources:
            if not source.is_configured():
                logger.info("Revenue source %s not configured, skipping sync", source.name)
                continue
            try:
                records = await source.fetch(day)
                for record in records:
                    await service.record(record)
                    upserted += 1
            except Exception:
                logger.exception("Revenue sync from %s failed for %s", source.name, day)
                await self.db.rollback()

        logger.info("Revenue sync for %s upserted %d entr(ies)", day, upserted)
        return upserted
