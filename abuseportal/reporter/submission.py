"""Sequential bulk submission of abuse reports.

One report is built and dispatched per target line, strictly in input
order and never concurrently, with a fixed pause between dispatches to stay
under the upstream rate limits. Each outcome is appended to a
``SubmissionLog`` whose listeners drive progress output (terminal or UI).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from .base import AbuseReport, FormValidationError, ReportResult
from .builder import ReportForm, build_report, ensure_form_ready
from .targets import split_targets, validate_entry

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 1000


class LogOutcome(str, Enum):
    """Tag attached to each submission log line."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    INFO = "INFO"
    SKIPPED = "SKIPPED"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"


class SubmissionState(str, Enum):
    """Lifecycle of a bulk run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class InvalidEntryPolicy(str, Enum):
    """What to do with lines that fail local format validation."""

    SKIP = "skip"  # Log as SKIPPED, do not dispatch
    SEND = "send"  # Dispatch anyway and let upstream reject


class ReportSender(Protocol):
    async def submit(self, report: AbuseReport) -> ReportResult: ...


@dataclass
class SubmissionLogEntry:
    """One line of the submission log."""

    index: int
    outcome: LogOutcome
    message: str
    target: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def format(self) -> str:
        return f"[{self.outcome.value}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "outcome": self.outcome.value,
            "message": self.message,
            "target": self.target,
            "createdAt": self.created_at.isoformat(),
        }


LogListener = Callable[[SubmissionLogEntry], None]


class SubmissionLog:
    """Append-only log of a bulk run, clearable on demand."""

    def __init__(self) -> None:
        self._entries: list[SubmissionLogEntry] = []
        self._listeners: list[LogListener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    @property
    def entries(self) -> list[SubmissionLogEntry]:
        return list(self._entries)

    def subscribe(self, listener: LogListener) -> None:
        self._listeners.append(listener)

    def append(
        self,
        outcome: LogOutcome,
        message: str,
        *,
        target: Optional[str] = None,
    ) -> SubmissionLogEntry:
        entry = SubmissionLogEntry(
            index=len(self._entries),
            outcome=outcome,
            message=message,
            target=target,
        )
        self._entries.append(entry)
        for listener in self._listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.warning("Submission log listener failed: %s", e)
        return entry

    def count(self, outcome: LogOutcome) -> int:
        return sum(1 for e in self._entries if e.outcome == outcome)

    def clear(self) -> None:
        self._entries.clear()

    def lines(self) -> list[str]:
        return [e.format() for e in self._entries]


@dataclass
class SubmissionSummary:
    """Totals for one finished (or cancelled) bulk run."""

    total: int
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def dispatched(self) -> int:
        return self.succeeded + self.failed


def _result_detail(result: ReportResult) -> str:
    if result.response_data:
        return json.dumps(result.response_data)
    return result.message or "Unknown error"


class BulkSubmitter:
    """Drive one bulk submission: build, dispatch, log, wait, repeat.

    Usage:
        submitter = BulkSubmitter(MSRCAbuseReporter(token), delay_ms=1000)
        submitter.log.subscribe(lambda entry: print(entry.format()))
        summary = await submitter.run(form, raw_text)
    """

    def __init__(
        self,
        reporter: ReportSender,
        *,
        delay_ms: int = DEFAULT_DELAY_MS,
        invalid_policy: InvalidEntryPolicy | str = InvalidEntryPolicy.SKIP,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.reporter = reporter
        self.delay_ms = max(0, int(delay_ms))
        self.invalid_policy = InvalidEntryPolicy(invalid_policy)
        self._sleep = sleep
        self._clock = clock
        self.log = SubmissionLog()
        self.state = SubmissionState.IDLE
        self.progress = 0

    def clear_logs(self) -> None:
        if self.state == SubmissionState.RUNNING:
            raise RuntimeError("Cannot clear logs while a submission is running")
        self.log.clear()
        self.progress = 0

    async def run(
        self,
        form: ReportForm,
        raw_text: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SubmissionSummary:
        """Submit every non-empty line of ``raw_text``.

        Raises FormValidationError before anything is dispatched when the
        form is incomplete (including an empty target list), and
        RuntimeError if a run is already in progress.
        """
        if self.state == SubmissionState.RUNNING:
            raise RuntimeError("A submission is already running")

        ensure_form_ready(form)
        entries = split_targets(raw_text)
        if not entries:
            raise FormValidationError(["Please fill in all required fields"])

        self.state = SubmissionState.RUNNING
        self.log.clear()
        self.progress = 0
        delay_ms = self.delay_ms if form.delay_ms is None else max(0, int(form.delay_ms))
        total = len(entries)
        summary = SubmissionSummary(total=total)
        logger.info(
            "Starting bulk submission: %d target(s), %s/%s, delay %dms",
            total,
            form.incident_type,
            form.threat_type,
            delay_ms,
        )

        try:
            for position, item in enumerate(entries, start=1):
                if cancel_event is not None and cancel_event.is_set():
                    summary.cancelled = True
                    break

                await self._process(item, form, summary)
                self.progress = round(100 * position / total)

                if position < total:
                    if cancel_event is not None and cancel_event.is_set():
                        summary.cancelled = True
                        break
                    self.log.append(
                        LogOutcome.INFO,
                        f"Waiting {delay_ms}ms before next submission... ({position}/{total})",
                    )
                    await self._sleep(delay_ms / 1000.0)
        except BaseException:
            self.state = SubmissionState.IDLE
            raise

        if summary.cancelled:
            remaining = total - summary.dispatched - summary.skipped
            self.log.append(
                LogOutcome.CANCELLED,
                f"Cancelled after {summary.dispatched + summary.skipped} of {total} items. "
                f"{remaining} not submitted.",
            )
            self.state = SubmissionState.CANCELLED
            logger.info("Bulk submission cancelled (%d/%d processed)", total - remaining, total)
            return summary

        self.log.append(
            LogOutcome.COMPLETE,
            f"Finished processing {total} items. Success: {self.log.count(LogOutcome.SUCCESS)}",
        )
        self.state = SubmissionState.COMPLETE
        logger.info(
            "Bulk submission complete: %d ok, %d failed, %d skipped",
            summary.succeeded,
            summary.failed,
            summary.skipped,
        )
        return summary

    async def _process(self, item: str, form: ReportForm, summary: SubmissionSummary) -> None:
        if self.invalid_policy == InvalidEntryPolicy.SKIP and not validate_entry(item, form.threat_type):
            summary.skipped += 1
            self.log.append(
                LogOutcome.SKIPPED,
                f"Invalid {form.threat_type} format, not submitted: {item}",
                target=item,
            )
            return

        now = self._clock() if self._clock else None
        report = build_report(item, form, now=now)
        result = await self.reporter.submit(report)

        if result.ok:
            summary.succeeded += 1
            self.log.append(LogOutcome.SUCCESS, f"Submitted: {item}", target=item)
            logger.info("Submitted report for %s", item)
        else:
            summary.failed += 1
            if result.status_code is None:
                message = f"Network/Client Error {item}: {result.message or 'Unknown error'}"
            else:
                message = f"Failed {item}: {_result_detail(result)}"
            self.log.append(LogOutcome.ERROR, message, target=item)
            logger.warning("Report for %s failed: %s", item, result.message)
