"""Daily scheduled trigger for the full collection."""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from croniter import croniter

from .collector import CrawlOrchestrator
from .errors import CrawlInProgressError

LOGGER = logging.getLogger(__name__)


def next_run_time(cron: str, after: datetime) -> datetime:
    return croniter(cron, after).get_next(datetime)


def run_forever(
    collector: CrawlOrchestrator,
    cron: str = "0 3 * * *",
    now: Callable[[], datetime] = datetime.now,
    sleep: Callable[[float], None] = time.sleep,
    max_runs: Optional[int] = None,
) -> int:
    """Sleep until each cron fire time and run ``collect_all``.

    Returns the number of fire times handled (only reached when max_runs is set).
    """
    runs = 0
    while max_runs is None or runs < max_runs:
        fire_at = next_run_time(cron, now())
        LOGGER.info("next scheduled collection at %s", fire_at.isoformat())
        delay = (fire_at - now()).total_seconds()
        if delay > 0:
            sleep(delay)
        try:
            collector.collect_all()
        except CrawlInProgressError:
            LOGGER.warning("scheduled collection skipped: a run is already in progress")
        except Exception:
            LOGGER.exception("scheduled collection crashed")
        runs += 1
    return runs
