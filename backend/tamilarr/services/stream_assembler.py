"""
Stream Assembler

Builds the stream listing for a movie or an episode:

    1. List the releases of the identity that contain the request
    2. Turn each release into a descriptor:
       - debrid configured: direct URL when the cached snapshot is ready,
         otherwise a resolve link served by /resolve/{infohash}/{episode}
       - no debrid: infohash with tracker and DHT sources
    3. Drop duplicates, then sort debrid first, best quality first, then by
       language

Listing never creates provider jobs: only the engine's cached fast path is
used here. Job creation happens when the client follows a resolve link.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from tamilarr.config import Config
from tamilarr.models import MediaIdentity, ReleaseCandidate, SEASON_PACK_START, SEASON_PACK_END
from tamilarr.schemas.responses import StreamDescriptor
from tamilarr.services.resolution_engine import DebridResolutionEngine
from tamilarr.services.tracker_list import build_tracker_sources, with_dht_source

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 'SD'

QUALITY_RANK = {
    '4K': 1,
    '2160p': 1,
    '1080p': 2,
    '720p': 3,
    '480p': 4,
    'SD': 5,
}
UNRANKED_QUALITY = 99


# ============================================================================
# Titles
# ============================================================================

def build_series_title(
    season: int,
    episode: Optional[int],
    episode_end: Optional[int],
    quality: Optional[str],
    language: Optional[str]
) -> str:
    """
    Format the details of a series release.

    Example:
        >>> build_series_title(1, 2, 2, '1080p', 'Tamil')
        'S01 | Episode 02 | Tamil\\n1080p'
        >>> build_series_title(1, 1, 999, None, None)
        'S01 | Season Pack\\nSD'
    """
    if not episode_end or episode_end == episode:
        episode_part = f"Episode {episode:02d}"
    elif episode == SEASON_PACK_START and episode_end == SEASON_PACK_END:
        episode_part = "Season Pack"
    else:
        episode_part = f"Episodes {episode:02d}-{episode_end:02d}"

    language_part = f" | {language}" if language else ""
    return f"S{season:02d} | {episode_part}{language_part}\n{quality or DEFAULT_QUALITY}"


def build_movie_title(title: str, quality: Optional[str], language: Optional[str]) -> str:
    language_part = f" | {language}" if language else ""
    return f"{title}{language_part}\n{quality or DEFAULT_QUALITY}"


# ============================================================================
# Ordering
# ============================================================================

def dedupe_key(stream: StreamDescriptor) -> Tuple[str, str, str, str]:
    return (
        'rd' if stream.is_debrid else 'p2p',
        stream.quality or DEFAULT_QUALITY,
        (stream.language or 'NA').lower(),
        stream.info_hash or stream.url or '',
    )


def dedupe_streams(streams: List[StreamDescriptor]) -> List[StreamDescriptor]:
    """Drop descriptors whose key was already seen (first one wins)."""
    seen = set()
    unique = []
    for stream in streams:
        key = dedupe_key(stream)
        if key in seen:
            continue
        seen.add(key)
        unique.append(stream)
    return unique


def sort_key(stream: StreamDescriptor) -> Tuple[int, int, bool, str]:
    language = stream.language.lower() if stream.language else ''
    return (
        0 if stream.is_debrid else 1,
        QUALITY_RANK.get(stream.quality, UNRANKED_QUALITY),
        not stream.language,
        language,
    )


def sort_streams(streams: List[StreamDescriptor]) -> List[StreamDescriptor]:
    """Debrid first, then quality rank, then language (missing last)."""
    return sorted(streams, key=sort_key)


# ============================================================================
# Assembler
# ============================================================================

class StreamAssembler:
    """
    Builds descriptors for one listing request.

    Attributes:
        db: SQLAlchemy session
        engine: Resolution engine, None when no debrid provider is configured
        trackers: Announce URLs used for peer-to-peer sources
        public_url: Base URL of this service (for resolve links)
        include_p2p: Also list peer-to-peer descriptors when debrid is configured
    """

    def __init__(
        self,
        db: Session,
        engine: Optional[DebridResolutionEngine] = None,
        trackers: Optional[List[str]] = None,
        public_url: str = None,
        include_p2p: bool = None
    ):
        self.db = db
        self.engine = engine
        self.trackers = trackers or []
        self.public_url = (public_url or Config.PUBLIC_URL).rstrip('/')
        self.include_p2p = Config.INCLUDE_P2P_WITH_DEBRID if include_p2p is None else include_p2p

    def list_candidates(
        self,
        identity: MediaIdentity,
        media_type: str,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> List[ReleaseCandidate]:
        if media_type == 'series':
            if season is None or episode is None:
                return []
            return ReleaseCandidate.for_episode(self.db, identity.tmdb_id, season, episode)
        return ReleaseCandidate.for_movie(self.db, identity.tmdb_id)

    def describe(self, identity: MediaIdentity, candidate: ReleaseCandidate) -> str:
        if candidate.is_series:
            return build_series_title(
                candidate.season,
                candidate.episode,
                candidate.episode_end,
                candidate.quality,
                candidate.language
            )
        return build_movie_title(identity.title, candidate.quality, candidate.language)

    async def build_streams(
        self,
        identity: MediaIdentity,
        media_type: str,
        season: Optional[int] = None,
        episode: Optional[int] = None
    ) -> List[StreamDescriptor]:
        """
        Build the sorted, de-duplicated descriptors for a title or episode.

        Args:
            identity: Canonical identity requested by the client
            media_type: "movie" or "series"
            season: Requested season (series only)
            episode: Requested episode (series only)

        Returns:
            List of StreamDescriptor
        """
        candidates = self.list_candidates(identity, media_type, season, episode)
        streams: List[StreamDescriptor] = []

        for candidate in candidates:
            details = self.describe(identity, candidate)
            if self.engine is not None:
                streams.append(await self._debrid_stream(candidate, details, episode))
                if self.include_p2p:
                    streams.append(self._p2p_stream(candidate, details))
            else:
                streams.append(self._p2p_stream(candidate, details))

        logger.debug(f"{len(streams)} descriptors built from {len(candidates)} releases of {identity.tmdb_id}")
        return sort_streams(dedupe_streams(streams))

    async def _debrid_stream(
        self,
        candidate: ReleaseCandidate,
        details: str,
        episode: Optional[int]
    ) -> StreamDescriptor:
        quality = candidate.quality or DEFAULT_QUALITY
        target_episode = episode if candidate.is_series else None

        result = await self.engine.resolve_cached(candidate.infohash, target_episode)
        if result is not None:
            return StreamDescriptor(
                name=f"[RD+] {quality}",
                title=f"{details}\n{(result.file_path or '').lstrip('/')}",
                url=result.url,
                quality=candidate.quality,
                language=candidate.language,
            )

        snapshot = self.engine.peek_snapshot(candidate.infohash)
        hint = "File not found" if snapshot is not None and snapshot.is_ready() else "Click to Download"
        return StreamDescriptor(
            name=f"[RD] {quality}",
            title=f"{details}\n{hint}",
            url=f"{self.public_url}/resolve/{candidate.infohash}/{episode or 1}",
            quality=candidate.quality,
            language=candidate.language,
        )

    def _p2p_stream(self, candidate: ReleaseCandidate, details: str) -> StreamDescriptor:
        return StreamDescriptor(
            name=f"[P2P] {candidate.quality or DEFAULT_QUALITY}",
            title=details,
            info_hash=candidate.infohash,
            sources=with_dht_source(build_tracker_sources(self.trackers), candidate.infohash),
            quality=candidate.quality,
            language=candidate.language,
        )
