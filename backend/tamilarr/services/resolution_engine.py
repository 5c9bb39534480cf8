"""
Debrid Resolution Engine

Turns a release fingerprint into a playable direct URL by driving the debrid
provider through its lifecycle:

    add magnet -> select files -> poll status -> downloaded -> unrestrict

Outcomes:
    - READY:     direct URL available
    - PENDING:   provider still working, or a transient fault; retry later
    - NOT_FOUND: release not indexed or its magnet is unknown

resolve() never raises. Unexpected failures are logged and reported as
PENDING so callers can always answer the media client with a retryable
response.

Single-flight:
    A ResolutionLock row marks a fingerprint whose job was (or is being)
    created. A caller that finds the lock joins the existing job by polling
    the job id cached on the ProviderSnapshot, unless one of the two cases
    below applies. A lock older than ``lock_stale_seconds`` whose release
    never got a job id is considered abandoned and re-acquired. So is any
    lock whose job ended in error or magnet_error: the next call re-adds.

Deadline:
    One window of ``poll_deadline`` seconds covers job creation and polling.
    Sleeps are clamped to it and every provider call is cut off when it
    closes, so resolve() returns within the window whatever the provider does.

Recovery:
    When the provider forgets the job (ResourceNotFoundError) the magnet is
    re-added once per resolve() call; later occurrences only keep polling.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from tamilarr.config import Config
from tamilarr.models import (
    MagnetRecord,
    ProviderSnapshot,
    ProviderStatus,
    ReleaseCandidate,
    ResolutionLock,
)
from tamilarr.services.debrid_client import RealDebridClient
from tamilarr.services.exceptions import NetworkRetryableError, ProviderAPIError, ResourceNotFoundError
from tamilarr.services.file_matcher import select_file
from tamilarr.services.structured_logging import CorrelationContext
from tamilarr.utils.fingerprint import normalize_fingerprint

logger = logging.getLogger(__name__)


class ResolutionStatus(str, Enum):
    READY = "ready"
    PENDING = "pending"
    NOT_FOUND = "not_found"


class ResolutionReason(str, Enum):
    """Why a resolution did not produce a URL."""
    INVALID_FINGERPRINT = "invalid_fingerprint"
    NOT_INDEXED = "not_indexed"
    MAGNET_UNAVAILABLE = "magnet_unavailable"
    JOB_NOT_CREATED = "job_not_created"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"


REASON_MESSAGES = {
    ResolutionReason.INVALID_FINGERPRINT: "Invalid infohash.",
    ResolutionReason.NOT_INDEXED: "Stream not indexed yet. Retry shortly.",
    ResolutionReason.MAGNET_UNAVAILABLE: "Magnet not available yet. Retry in a bit.",
    ResolutionReason.JOB_NOT_CREATED: "RD torrent not created yet. Retry later.",
    ResolutionReason.TIMEOUT: "RD still preparing this stream. Please retry shortly.",
    ResolutionReason.PROVIDER_ERROR: "Temporary RD error. Retry shortly.",
}


@dataclass
class ResolutionResult:
    """Outcome of a resolution attempt."""
    status: ResolutionStatus
    url: Optional[str] = None
    file_path: Optional[str] = None
    reason: Optional[ResolutionReason] = None
    provider_status: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status == ResolutionStatus.READY

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Ready."
        return REASON_MESSAGES[self.reason]

    @classmethod
    def ready(cls, url: str, file_path: Optional[str] = None) -> 'ResolutionResult':
        return cls(status=ResolutionStatus.READY, url=url, file_path=file_path)

    @classmethod
    def pending(cls, reason: ResolutionReason, provider_status: Optional[str] = None) -> 'ResolutionResult':
        return cls(status=ResolutionStatus.PENDING, reason=reason, provider_status=provider_status)

    @classmethod
    def not_found(cls, reason: ResolutionReason) -> 'ResolutionResult':
        return cls(status=ResolutionStatus.NOT_FOUND, reason=reason)


class DebridResolutionEngine:
    """
    Resolves fingerprints through a debrid provider.

    One engine serves one request: it holds the request's database session.

    Attributes:
        db: SQLAlchemy session
        client: Provider client
        poll_deadline: Window for job creation and polling, in seconds
        poll_interval: Delay between two status polls in seconds
        settle_delay: Delay between add-magnet and select-files in seconds
        lock_stale_seconds: Age after which a lock without job id is abandoned
    """

    def __init__(
        self,
        db: Session,
        client: RealDebridClient,
        poll_deadline: float = None,
        poll_interval: float = None,
        settle_delay: float = None,
        lock_stale_seconds: int = None,
        sleep: Callable[[float], Awaitable[None]] = None,
        clock: Callable[[], float] = None
    ):
        self.db = db
        self.client = client
        self.poll_deadline = Config.RESOLVE_POLL_DEADLINE if poll_deadline is None else poll_deadline
        self.poll_interval = Config.RESOLVE_POLL_INTERVAL if poll_interval is None else poll_interval
        self.settle_delay = Config.RESOLVE_SETTLE_DELAY if settle_delay is None else settle_delay
        self.lock_stale_seconds = (
            Config.RESOLUTION_LOCK_STALE_SECONDS if lock_stale_seconds is None else lock_stale_seconds
        )
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    # =========================================================================
    # Public API
    # =========================================================================

    async def resolve(self, fingerprint: str, episode: Optional[int] = None) -> ResolutionResult:
        """
        Resolve a release into a direct URL, creating a provider job if needed.

        Args:
            fingerprint: Release infohash (any case, surrounding whitespace ignored)
            episode: Requested episode number, None for movies

        Returns:
            ResolutionResult (never raises)
        """
        infohash = normalize_fingerprint(fingerprint)
        if not infohash:
            return ResolutionResult.not_found(ResolutionReason.INVALID_FINGERPRINT)

        with CorrelationContext(infohash=infohash):
            try:
                return await self._resolve(infohash, episode)
            except Exception as e:
                logger.exception(f"Resolution of {infohash} failed unexpectedly: {e}")
                self.db.rollback()
                return ResolutionResult.pending(ResolutionReason.PROVIDER_ERROR)

    def peek_snapshot(self, fingerprint: str) -> Optional[ProviderSnapshot]:
        """Get the cached provider state of a release, if any."""
        infohash = normalize_fingerprint(fingerprint)
        if not infohash:
            return None
        return ProviderSnapshot.get(self.db, infohash)

    async def resolve_cached(self, fingerprint: str, episode: Optional[int] = None) -> Optional[ResolutionResult]:
        """
        Fast path only: resolve from a ready snapshot without creating jobs.

        Used while listing streams, where a full provider round-trip per
        release is too slow.

        Returns:
            READY result, or None when the snapshot is not ready or no file matched
        """
        snapshot = self.peek_snapshot(fingerprint)
        if snapshot is None or not snapshot.is_ready():
            return None

        with CorrelationContext(infohash=snapshot.infohash):
            return await self._pick_and_unrestrict(snapshot, episode)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _resolve(self, infohash: str, episode: Optional[int]) -> ResolutionResult:
        candidate = ReleaseCandidate.find_by_infohash(self.db, infohash)
        if candidate is not None and not candidate.is_series:
            episode = None

        snapshot = ProviderSnapshot.get(self.db, infohash)
        if snapshot is not None and snapshot.is_ready():
            result = await self._pick_and_unrestrict(snapshot, episode)
            if result:
                logger.info(f"Resolved {infohash} from cached snapshot")
                return result
            logger.debug(f"Cached snapshot of {infohash} has no usable file yet")

        if candidate is None:
            logger.warning(f"No release indexed for {infohash}")
            return ResolutionResult.not_found(ResolutionReason.NOT_INDEXED)

        magnet = MagnetRecord.get_magnet(self.db, infohash)
        if not magnet:
            logger.warning(f"No magnet known for {infohash}")
            return ResolutionResult.not_found(ResolutionReason.MAGNET_UNAVAILABLE)

        deadline = self._clock() + self.poll_deadline

        if self._may_create_job(infohash):
            ResolutionLock.acquire(self.db, infohash)
            await self._create_job(infohash, magnet, deadline)
        else:
            logger.info(f"Resolution of {infohash} already started, joining existing job")

        return await self._poll(infohash, magnet, episode, deadline)

    def _may_create_job(self, infohash: str) -> bool:
        lock = ResolutionLock.get(self.db, infohash)
        if lock is None:
            return True

        snapshot = ProviderSnapshot.get(self.db, infohash, refresh=True)
        if snapshot is not None and snapshot.is_terminal_failure():
            logger.warning(f"Job {snapshot.rd_id} for {infohash} ended in {snapshot.status}, re-adding magnet")
            return True

        if not lock.is_stale(self.lock_stale_seconds):
            return False

        if snapshot is not None and snapshot.rd_id:
            return False

        logger.warning(f"Abandoned resolution lock for {infohash} (created {lock.created_at}), retrying job creation")
        return True

    def _remaining(self, deadline: float) -> float:
        return max(deadline - self._clock(), 0.0)

    async def _call(self, deadline: Optional[float], func: Callable[..., Awaitable[Any]], *args) -> Any:
        """
        Await a provider call, cut short when the resolution window closes.

        Raises:
            NetworkRetryableError: No time left, or no answer in the time left
        """
        if deadline is None:
            return await func(*args)

        name = getattr(func, '__name__', 'provider call')
        remaining = self._remaining(deadline)
        if remaining <= 0:
            raise NetworkRetryableError(f"No time left for {name}")

        try:
            return await asyncio.wait_for(func(*args), timeout=remaining)
        except asyncio.TimeoutError as e:
            raise NetworkRetryableError(f"{name} gave no answer within {remaining:.1f}s", original_exception=e)

    async def _create_job(self, infohash: str, magnet: str, deadline: float) -> Optional[str]:
        """
        Submit the magnet and select all files.

        Returns:
            Provider job id, or None if job creation failed
        """
        try:
            added = await self._call(deadline, self.client.add_magnet, magnet)
        except ProviderAPIError as e:
            logger.warning(f"Add magnet failed for {infohash}, trying add-and-select: {e}")
            try:
                info = await self._call(deadline, self.client.add_and_select, magnet)
            except ProviderAPIError as fallback_error:
                logger.warning(f"Add-and-select failed for {infohash}: {fallback_error}")
                info = None

            if info and info.get('id'):
                snapshot = ProviderSnapshot.record_info(self.db, infohash, str(info['id']), info)
                return snapshot.rd_id

            logger.error(f"Provider job could not be created for {infohash}")
            return None

        rd_id = str(added['id'])
        ProviderSnapshot.upsert(self.db, infohash, rd_id, ProviderStatus.QUEUED.value)
        logger.info(f"Provider job {rd_id} created for {infohash}")

        await self._sleep(min(self.settle_delay, self._remaining(deadline)))
        await self._select_all(rd_id, deadline)
        return rd_id

    async def _select_all(self, rd_id: str, deadline: float) -> None:
        try:
            await self._call(deadline, self.client.select_files, rd_id, 'all')
        except ProviderAPIError as e:
            # Polling surfaces an expired job on its own
            logger.warning(f"File selection failed on job {rd_id}: {e}")

    async def _poll(
        self,
        infohash: str,
        magnet: str,
        episode: Optional[int],
        deadline: float
    ) -> ResolutionResult:
        readded = False
        last_status = None

        while self._clock() < deadline:
            snapshot = ProviderSnapshot.get(self.db, infohash, refresh=True)
            if snapshot is None or not snapshot.rd_id:
                return ResolutionResult.pending(ResolutionReason.JOB_NOT_CREATED)

            rd_id = snapshot.rd_id
            last_status = last_status or snapshot.status

            await self._sleep(min(self.poll_interval, self._remaining(deadline)))
            if self._remaining(deadline) <= 0:
                break

            try:
                info = await self._call(deadline, self.client.get_torrent_info, rd_id)
            except ResourceNotFoundError as e:
                if readded:
                    logger.warning(f"Job {rd_id} unknown to provider again, not re-adding: {e}")
                    continue
                readded = True
                logger.warning(f"Job {rd_id} expired on provider, re-adding magnet for {infohash}")
                await self._create_job(infohash, magnet, deadline)
                continue
            except ProviderAPIError as e:
                logger.warning(f"Status poll of job {rd_id} failed: {e}")
                continue

            snapshot = ProviderSnapshot.record_info(self.db, infohash, rd_id, info)
            last_status = snapshot.status

            if snapshot.status == ProviderStatus.WAITING_FILES_SELECTION.value:
                await self._select_all(snapshot.rd_id, deadline)
            elif snapshot.is_terminal_failure():
                logger.warning(f"Job {snapshot.rd_id} reported {snapshot.status}")
            elif snapshot.is_ready():
                result = await self._pick_and_unrestrict(snapshot, episode, deadline)
                if result:
                    logger.info(f"Resolved {infohash} after provider download")
                    return result

        logger.info(f"Job for {infohash} not ready within {self.poll_deadline}s (last status: {last_status})")
        return ResolutionResult.pending(ResolutionReason.TIMEOUT, provider_status=last_status)

    async def _pick_and_unrestrict(
        self,
        snapshot: ProviderSnapshot,
        episode: Optional[int],
        deadline: Optional[float] = None
    ) -> Optional[ResolutionResult]:
        match = select_file(snapshot.files, snapshot.links, episode)
        if match is None:
            return None

        try:
            unrestricted = await self._call(deadline, self.client.unrestrict_link, match.link)
        except ProviderAPIError as e:
            logger.warning(f"Unrestrict failed for {match.path}: {e}")
            return None

        return ResolutionResult.ready(unrestricted['download'], file_path=match.path)
