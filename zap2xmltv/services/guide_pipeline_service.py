"""
Guide Build Pipeline

Authenticates, fetches every grid window in order, normalizes each page into
one GuideDocument, writes the XMLTV file and rotates historical snapshots.
The output file is only written after every window succeeded.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

import httpx

from zap2xmltv.config import GuideSettings
from zap2xmltv.errors import GuideError, GuideWriteError, RotationError, RunCancelledError
from zap2xmltv.models import LineupConfig, Session, TimeWindow
from zap2xmltv.services.auth_service import AuthClient
from zap2xmltv.services.grid_service import GridFetcher
from zap2xmltv.services.history_service import HistoryRotator
from zap2xmltv.services.normalizer_service import GuideNormalizer
from zap2xmltv.services.xmltv_writer_service import GuideDocument
from zap2xmltv.utils.file_operations import write_file_atomic
from zap2xmltv.utils.logging_helpers import (
    log_build_end,
    log_build_start,
    log_guide_summary,
    log_window_processing,
)
from zap2xmltv.utils.timezone import build_time_windows


logger = logging.getLogger(__name__)

# Serializes builds started from this process (CLI, scheduler, HTTP trigger)
_build_lock = asyncio.Lock()


class PipelineState(str, Enum):
    INIT = "init"
    AUTHENTICATING = "authenticating"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    SERIALIZING = "serializing"
    ROTATING = "rotating"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class RunSummary:
    started_at: datetime
    completed_at: datetime
    windows_fetched: int
    channels: int
    programmes: int
    output_file: Path
    snapshot_file: Path | None = None
    snapshots_deleted: int = 0

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    def to_dict(self) -> dict:
        return {
            "status": "success",
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "windows_fetched": self.windows_fetched,
            "channels": self.channels,
            "programmes": self.programmes,
            "output_file": str(self.output_file),
            "snapshot_file": str(self.snapshot_file) if self.snapshot_file else None,
            "snapshots_deleted": self.snapshots_deleted,
        }


def describe_failure(exc: BaseException) -> str:
    """Flatten an exception and its causes into one readable line."""
    messages: list[str] = []
    current: BaseException | None = exc
    while current is not None:
        text = str(current) or type(current).__name__
        if text not in messages:
            messages.append(text)
        current = current.__cause__
    return ": ".join(messages)


def lineup_from_settings(settings: GuideSettings) -> LineupConfig:
    return LineupConfig(
        lineup_id=settings.lineup_id,
        headend_id=settings.headend_id,
        country=settings.country,
        zip_code=settings.zip_code,
        device=settings.device,
        language=settings.language,
    )


class GuidePipeline:
    """One guide build. Not safe to share an output path across processes."""

    def __init__(
        self,
        settings: GuideSettings,
        *,
        client: httpx.AsyncClient | None = None,
        rotator: HistoryRotator | None = None,
    ) -> None:
        self.settings = settings
        self.output_path = Path(settings.output_file)
        self.normalizer = GuideNormalizer(settings.language)
        self.rotator = rotator or HistoryRotator()
        self._client = client
        self.state = PipelineState.INIT
        self.failure_reason: str | None = None

    def _transition(self, state: PipelineState) -> None:
        logger.debug("Pipeline state: %s -> %s", self.state.value, state.value)
        self.state = state

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.settings.request_timeout_sec) as client:
            yield client

    @staticmethod
    def _check_cancelled(cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelledError("Guide build cancelled")

    async def run(
        self,
        windows: Sequence[TimeWindow] | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> RunSummary:
        """
        Build and write the full guide

        Args:
            windows: Windows to fetch (defaults to the configured guide span)
            cancel_event: When set, the run aborts before its next network call

        Returns:
            RunSummary of the completed build

        Raises:
            GuideError: ConfigError, AuthError, FetchError, GuideWriteError or
                RunCancelledError; the output file is left untouched
        """
        started_at = datetime.now(timezone.utc)
        log_build_start(logger)

        try:
            self.settings.require_complete()
            if windows is None:
                windows = build_time_windows(
                    guide_days=self.settings.guide_days,
                    window_hours=self.settings.window_hours,
                )

            async with self._client_scope() as client:
                session = await self._authenticate(client, cancel_event)
                document = await self._collect_windows(client, session, windows, cancel_event)

            self._transition(PipelineState.SERIALIZING)
            log_guide_summary(logger, len(document.channels), len(document.programmes))
            await self._write(document)
        except GuideError as exc:
            self.failure_reason = describe_failure(exc)
            self._transition(PipelineState.FAILED)
            logger.error("Guide build failed: %s", self.failure_reason)
            raise

        summary = RunSummary(
            started_at=started_at,
            completed_at=started_at,
            windows_fetched=len(windows),
            channels=len(document.channels),
            programmes=len(document.programmes),
            output_file=self.output_path,
        )
        await self._rotate(summary)

        summary.completed_at = datetime.now(timezone.utc)
        self._transition(PipelineState.DONE)
        log_build_end(logger)
        return summary

    async def _authenticate(
        self,
        client: httpx.AsyncClient,
        cancel_event: asyncio.Event | None,
    ) -> Session:
        self._transition(PipelineState.AUTHENTICATING)
        self._check_cancelled(cancel_event)
        return await AuthClient(client).authenticate(
            self.settings.username,
            self.settings.password,
        )

    async def _collect_windows(
        self,
        client: httpx.AsyncClient,
        session: Session,
        windows: Sequence[TimeWindow],
        cancel_event: asyncio.Event | None,
    ) -> GuideDocument:
        fetcher = GridFetcher(client)
        lineup = lineup_from_settings(self.settings)
        document = GuideDocument()

        for index, window in enumerate(windows, start=1):
            self._transition(PipelineState.FETCHING)
            self._check_cancelled(cancel_event)
            log_window_processing(logger, index, len(windows), window)
            page = await fetcher.fetch_window(session, lineup, window)

            self._transition(PipelineState.NORMALIZING)
            self._process_page(document, page)

        return document

    def _process_page(self, document: GuideDocument, page: dict) -> None:
        if not document.channels:
            document.add_channels_once(self.normalizer.extract_channels(page))
        programmes = self.normalizer.extract_programmes(page)
        document.append_programmes(programmes)
        logger.debug("Window added %s programmes", len(programmes))

    async def _write(self, document: GuideDocument) -> None:
        try:
            data = document.serialize()
            await write_file_atomic(self.output_path, data)
        except OSError as exc:
            raise GuideWriteError(f"Failed to write guide {self.output_path}: {exc}") from exc

    async def _rotate(self, summary: RunSummary) -> None:
        self._transition(PipelineState.ROTATING)
        try:
            result = await self.rotator.rotate(
                self.output_path,
                self.settings.historical_guide_days,
            )
        except RotationError as exc:
            logger.error("Historical rotation failed (guide file is still valid): %s", exc)
            return
        summary.snapshot_file = result.snapshot
        summary.snapshots_deleted = len(result.deleted)


async def build_guide(
    settings: GuideSettings,
    *,
    client: httpx.AsyncClient | None = None,
    cancel_event: asyncio.Event | None = None,
) -> dict:
    """
    Service entry point for a guide build with in-process concurrency protection.

    Returns:
        Dictionary with build statistics, or a skip/error message.
    """
    if _build_lock.locked():
        logger.warning("Guide build already in progress, skipping this request")
        return {
            "status": "skipped",
            "message": "Guide build already in progress",
        }

    async with _build_lock:
        pipeline = GuidePipeline(settings, client=client)
        try:
            summary = await pipeline.run(cancel_event=cancel_event)
            return summary.to_dict()
        except GuideError:
            return {"status": "failed", "error": pipeline.failure_reason}
        except Exception as exc:  # Catch-all to keep scheduler and API alive
            logger.error("Unexpected error during guide build: %s", exc, exc_info=True)
            return {"status": "failed", "error": describe_failure(exc)}
