# Overview: In-process daily auto-close of cash days, with a startup backfill.

"""
Auto-Close Scheduler

WHY: Every business day must end up closed (summary + accruals) even when no
admin closes it, and even if the service was down at closing time.

DESIGN:
- Owned by the application (app.extensions["auto_close"]); started once by the
  WSGI entry point, never by create_app, so CLI and test apps do not spawn it.
- start(): background thread that first backfills the previous N business
  dates, then sleeps on a threading.Event until the next HH:MM in the business
  timezone and closes "today" there.
- Every close runs in its own app context and session. Failures are logged
  and never propagate: one bad date does not stop the rest of the backfill or
  later scheduled runs.
- stop(): sets the event and joins the thread.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from .extensions import db
from .time_utils import business_now, business_zone, recent_business_dates

logger = logging.getLogger(__name__)


class AutoCloseScheduler:
    def __init__(
        self,
        app,
        *,
        close_day: Callable[[date], object] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        cfg = app.config
        self.app = app
        self.tz_name = cfg["BUSINESS_TZ"]
        business_zone(self.tz_name)  # fail fast on a bad zone name

        self.enabled = bool(cfg.get("AUTO_CLOSE_ENABLED", False))
        self.backfill_days = int(cfg.get("AUTO_CLOSE_BACKFILL_DAYS", 3))
        self.hour = int(cfg.get("AUTO_CLOSE_HOUR", 20))
        self.minute = int(cfg.get("AUTO_CLOSE_MINUTE", 0))
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise ValueError(f"invalid auto-close time {self.hour:02d}:{self.minute:02d}")
        if self.backfill_days < 0:
            raise ValueError("AUTO_CLOSE_BACKFILL_DAYS must be >= 0")

        if close_day is None:
            from .services.closure_service import auto_close_day
            close_day = auto_close_day
        self._close_day = close_day
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def seconds_until_next_run(self, now: datetime | None = None) -> float:
        """Seconds from `now` to the next HH:MM wall-clock time in the business zone."""
        local = business_now(self.tz_name, now or self._clock())
        zone = local.tzinfo

        target_day = local.date()
        target = datetime(target_day.year, target_day.month, target_day.day,
                          self.hour, self.minute, tzinfo=zone)
        if target <= local:
            target_day = target_day + timedelta(days=1)
            target = datetime(target_day.year, target_day.month, target_day.day,
                              self.hour, self.minute, tzinfo=zone)

        # Compare in UTC so DST transitions count real elapsed seconds
        delta = target.astimezone(timezone.utc) - local.astimezone(timezone.utc)
        return max(delta.total_seconds(), 0.0)

    def run_backfill(self, now: datetime | None = None) -> dict[str, bool]:
        """Close each of the previous N business dates (oldest first)."""
        results = {}
        for day in recent_business_dates(self.tz_name, self.backfill_days, now or self._clock()):
            results[day.isoformat()] = self._run_close(day, reason="backfill")
        logger.info(
            "auto-close backfill finished: %d/%d dates closed",
            sum(results.values()), len(results),
        )
        return results

    def run_scheduled_close(self, now: datetime | None = None) -> bool:
        """Close today's business date."""
        today = business_now(self.tz_name, now or self._clock()).date()
        return self._run_close(today, reason="scheduled")

    def start(self) -> bool:
        """Start the background thread. Returns False when disabled."""
        if not self.enabled:
            logger.info("auto-close disabled (AUTO_CLOSE_ENABLED=false)")
            return False
        if self.is_running:
            return True

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="perla-auto-close",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "auto-close started: daily at %02d:%02d %s, backfill %d days",
            self.hour, self.minute, self.tz_name, self.backfill_days,
        )
        return True

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("auto-close stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_close(self, day: date, *, reason: str) -> bool:
        with self.app.app_context():
            try:
                result = self._close_day(day)
                status = result.get("status") if isinstance(result, dict) else "done"
                logger.info("auto-close %s %s: %s", reason, day.isoformat(), status)
                return True
            except Exception:
                db.session.rollback()
                logger.exception("auto-close %s %s failed", reason, day.isoformat())
                return False
            finally:
                db.session.remove()

    def _run_loop(self) -> None:
        self.run_backfill()
        while not self._stop_event.is_set():
            wait = self.seconds_until_next_run()
            if self._stop_event.wait(timeout=wait):
                break
            self.run_scheduled_close()
