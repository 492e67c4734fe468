"""Import every model so ``Base.metadata`` knows all tables."""

from sitepulse.models.alert import Alert, AlertRule
from sitepulse.models.daily_stats import DailyStats
from sitepulse.models.event import Event
from sitepulse.models.revenue import RevenueEntry
from sitepulse.models.site import Site

__all__ = ["Alert", "AlertRule", "DailyStats", "Event", "RevenueEntry", "Site"]
