"""
Tracker List Service

Keeps the list of public BitTorrent announce URLs advertised as ``sources``
on peer-to-peer stream descriptors.

The list is downloaded from TRACKER_LIST_URL (one announce URL per line,
``#`` comments ignored) at startup and refreshed periodically. When the
download fails or yields nothing, a small built-in list is used, so
get_trackers() never returns an empty list.
"""

import logging
from typing import List, Optional

import httpx

from tamilarr.config import Config
from tamilarr.services.rate_limiter import rate_limited

logger = logging.getLogger(__name__)

FALLBACK_TRACKERS = [
    'udp://tracker.opentrackr.org:1337/announce',
    'udp://tracker.openbittorrent.com:6969/announce',
    'udp://tracker.dler.org:6969/announce',
    'udp://open.stealth.si:80/announce',
    'udp://opentracker.i2p.rocks:6969/announce',
]


def parse_tracker_list(text: str) -> List[str]:
    """Split a downloaded tracker list into announce URLs."""
    trackers = []
    for line in (text or '').splitlines():
        line = line.strip()
        if line and not line.startswith('#'):
            trackers.append(line)
    return trackers


class TrackerListService:
    """
    In-memory tracker list with a remote source and a built-in fallback.

    Attributes:
        url: Remote list location
        timeout: Download timeout in seconds
    """

    def __init__(
        self,
        url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url or Config.TRACKER_LIST_URL
        self.timeout = timeout if timeout is not None else Config.TRACKER_FETCH_TIMEOUT
        self._transport = transport
        self._trackers: List[str] = []

    @rate_limited(service="trackers")
    async def _download(self) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.text

    async def fetch_and_cache(self) -> List[str]:
        """
        Download the tracker list and replace the cached one.

        Returns:
            The list now in use (the fallback list when the download failed)
        """
        logger.info(f"Fetching tracker list from {self.url}")
        try:
            trackers = parse_tracker_list(await self._download())
        except Exception as e:
            logger.error(f"Failed to fetch tracker list, using fallback list: {e}")
            trackers = []

        if trackers:
            logger.info(f"Cached {len(trackers)} trackers")
            self._trackers = trackers
        else:
            logger.warning("Tracker list empty, using fallback list")
            self._trackers = list(FALLBACK_TRACKERS)

        return self._trackers

    def get_trackers(self) -> List[str]:
        """Get the cached tracker list (never empty)."""
        if not self._trackers:
            self._trackers = list(FALLBACK_TRACKERS)
        return self._trackers


def build_tracker_sources(trackers: List[str]) -> List[str]:
    """
    Convert announce URLs to stream ``sources`` entries.

    Only UDP and HTTP(S) trackers are kept; HTTPS is advertised as HTTP since
    media-center clients only understand the two schemes.

    Example:
        >>> build_tracker_sources(['udp://a:1/announce', 'https://b/announce', 'wss://c'])
        ['tracker:udp://a:1/announce', 'tracker:http://b/announce']
    """
    sources = []
    for tracker in trackers:
        if tracker.startswith('udp://'):
            sources.append(f"tracker:{tracker}")
        elif tracker.startswith('http://'):
            sources.append(f"tracker:{tracker}")
        elif tracker.startswith('https://'):
            sources.append(f"tracker:http://{tracker[len('https://'):]}")
    return sources


def with_dht_source(sources: List[str], infohash: Optional[str]) -> List[str]:
    """Copy ``sources`` and append the DHT source of ``infohash``."""
    result = list(sources or [])
    if infohash:
        result.append(f"dht:{infohash}")
    return result


# Global tracker list instance
_tracker_list: Optional[TrackerListService] = None


def get_tracker_list() -> TrackerListService:
    """Get the global tracker list instance."""
    global _tracker_list
    if _tracker_list is None:
        _tracker_list = TrackerListService()
    return _tracker_list
