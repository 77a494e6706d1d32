"""End-to-end crawl: list -> detail -> describe -> geocode -> reconcile.

One worker, strictly sequential. Failures are contained where they occur:
an item that cannot be fetched is skipped, a page that cannot be fetched
ends that category, and nothing escapes ``run`` except an attempt to start
a second run while one is in progress.
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, Optional, Tuple

from .config import Settings
from .content import ContentResolver
from .errors import CrawlInProgressError, GeocodingAuthError
from .fetcher import SourceClient, to_enriched
from .geocoder import PlaceResolver
from .models import NO_CONTENT, EnrichedRecord
from .pacing import Pacer
from .store import PerformanceStore, ReconcileOutcome, Reconciler

LOGGER = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 5
COORDINATE_FIELDS = ("latitude", "longitude")


@dataclass
class CategoryReport:
    category: str
    pages: int = 0
    finished: bool = False
    aborted: bool = False
    error: Optional[str] = None


@dataclass
class CrawlReport:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    categories: Dict[str, CategoryReport] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.unchanged

    def record(self, outcome: ReconcileOutcome) -> None:
        if outcome is ReconcileOutcome.CREATED:
            self.created += 1
        elif outcome is ReconcileOutcome.UPDATED:
            self.updated += 1
        else:
            self.unchanged += 1


class CrawlOrchestrator:
    def __init__(
        self,
        settings: Settings,
        source: SourceClient,
        content: ContentResolver,
        places: PlaceResolver,
        reconciler: Reconciler,
        pacer: Optional[Pacer] = None,
        today: Callable[[], date] = date.today,
    ):
        self.settings = settings
        self.source = source
        self.content = content
        self.places = places
        self.reconciler = reconciler
        self.pacer = pacer or Pacer(settings.item_delay, settings.page_delay)
        self.today = today
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def date_window(self):
        start = self.today()
        end = start + timedelta(days=self.settings.lookahead_days)
        return start.strftime("%Y%m%d"), end.strftime("%Y%m%d")

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def collect_all(self) -> CrawlReport:
        """Full crawl; shared by the scheduled and the manual trigger."""
        LOGGER.info("collection started")
        report = self.run()
        self._log_finished(report)
        return report

    def start_background(self) -> threading.Thread:
        """Take the run lock now and do a full crawl on a worker thread.

        Raises CrawlInProgressError right away when a run is already active,
        so two triggers arriving together cannot both be accepted.
        """
        self._acquire()
        try:
            worker = threading.Thread(target=self._background_collect, name="collect-all", daemon=True)
            worker.start()
        except Exception:
            self._lock.release()
            raise
        return worker

    def _background_collect(self) -> None:
        try:
            LOGGER.info("collection started")
            self._log_finished(self._run_locked(None, None))
        except Exception:
            LOGGER.exception("background collection crashed")
        finally:
            self._lock.release()

    def _log_finished(self, report: CrawlReport) -> None:
        LOGGER.info(
            "collection finished: %d new, %d updated, %d unchanged, %d skipped, %d failed",
            report.created,
            report.updated,
            report.unchanged,
            report.skipped,
            report.failed,
        )

    def collect_sample(self, limit: int) -> int:
        """One page per category, ``limit`` items in total split evenly across categories."""
        categories = self.settings.categories
        per_category = max(1, math.ceil(limit / len(categories))) if categories else 0
        LOGGER.info("sample collection started (target %d, %d per category)", limit, per_category)
        report = self.run(max_pages=1, per_category_limit=per_category)
        LOGGER.info("sample collection finished: %d records", report.processed)
        return report.processed

    def run(
        self, max_pages: Optional[int] = None, per_category_limit: Optional[int] = None
    ) -> CrawlReport:
        """Crawl every configured category.

        Args:
            max_pages: stop each category after this many pages (None: until empty page).
            per_category_limit: stop each category after this many items.
        """
        self._acquire()
        try:
            return self._run_locked(max_pages, per_category_limit)
        finally:
            self._lock.release()

    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise CrawlInProgressError("a collection run is already in progress")

    def _run_locked(
        self, max_pages: Optional[int], per_category_limit: Optional[int]
    ) -> CrawlReport:
        report = CrawlReport()
        if not self.source.configured:
            LOGGER.warning("KOPIS API key missing")
            return report
        date_from, date_to = self.date_window()
        for category in self.settings.categories:
            report.categories[category] = self._crawl_category(
                category, date_from, date_to, report, max_pages, per_category_limit
            )
        return report

    # ------------------------------------------------------------------
    # per category / per item
    # ------------------------------------------------------------------

    def _crawl_category(
        self,
        category: str,
        date_from: str,
        date_to: str,
        report: CrawlReport,
        max_pages: Optional[int],
        per_category_limit: Optional[int],
    ) -> CategoryReport:
        state = CategoryReport(category=category)
        seen = 0
        page = 1
        LOGGER.info("[%s] collection started", category)

        while True:
            try:
                items = self.source.fetch_list(category, page, date_from, date_to)
            except Exception as e:
                LOGGER.error("[%s] page %d failed, category aborted: %s", category, page, e)
                state.aborted = True
                state.error = str(e)
                return state

            if not items:
                LOGGER.info("[%s] all pages collected (%d pages)", category, page - 1)
                state.finished = True
                return state

            for item in items:
                if per_category_limit is not None and seen >= per_category_limit:
                    break
                self.process_item(item.id, category, report)
                seen += 1
                self.pacer.after_item()

            state.pages = page
            self.pacer.after_page()

            if per_category_limit is not None and seen >= per_category_limit:
                state.finished = True
                return state
            if max_pages is not None and page >= max_pages:
                state.finished = True
                return state
            page += 1

    def process_item(self, performance_id: str, category: str, report: CrawlReport) -> None:
        try:
            detail = self.source.fetch_detail(performance_id)
        except Exception as e:
            LOGGER.error("detail fetch failed for %s: %s", performance_id, e)
            report.failed += 1
            return
        if detail is None:
            LOGGER.info("no detail record for %s, skipped", performance_id)
            report.skipped += 1
            return

        record = to_enriched(detail, category, today=self.today())
        if not record.id:
            record.id = performance_id
        unresolved = self.enrich(record)

        try:
            outcome = self.reconciler.reconcile(record.id, record, keep_existing=unresolved)
        except Exception as e:
            LOGGER.error("saving %s failed: %s", record.id, e)
            report.failed += 1
            return
        report.record(outcome)

    def enrich(self, record: EnrichedRecord) -> Tuple[str, ...]:
        """Fill description and coordinates in place; never raises.

        Returns the fields whose lookup failed (as opposed to finding
        nothing), so stored values for them can be kept.
        """
        if len(record.description or "") < MIN_DESCRIPTION_LENGTH:
            LOGGER.info("[%s] no synopsis, searching for a description", record.title)
            try:
                found = self.content.resolve_description(record.title, record.type)
            except Exception:
                LOGGER.debug("description search crashed for %s", record.id, exc_info=True)
                found = ""
            if found:
                record.description = found
                LOGGER.info("[%s] description filled (%d chars)", record.title, len(found))
            else:
                record.description = NO_CONTENT
                LOGGER.warning("[%s] description search found nothing", record.title)

        try:
            coords = self.places.resolve_coordinates(record.place_name, raise_errors=True)
        except GeocodingAuthError:
            return COORDINATE_FIELDS
        except Exception:
            LOGGER.debug("geocoding crashed for %s", record.id, exc_info=True)
            return COORDINATE_FIELDS
        if coords is not None:
            record.latitude = coords.latitude
            record.longitude = coords.longitude
        return ()


def build_collector(settings: Settings, store: Optional[PerformanceStore] = None) -> CrawlOrchestrator:
    """Wire the clients, store and reconciler from settings."""
    if store is None:
        store = PerformanceStore(settings.database_url)
        store.create_all()
    return CrawlOrchestrator(
        settings=settings,
        source=SourceClient(settings),
        content=ContentResolver(settings),
        places=PlaceResolver(settings),
        reconciler=Reconciler(store),
    )
