"""
File Matcher

Picks the file to stream out of a provider torrent's file list.

The provider reports two lists for a torrent:
    - files: every file of the torrent, each {id, path, bytes, selected}
    - links: one hoster link per *selected* file, in the same order

So the i-th selected file is downloaded through links[i]. Matching filters
the file list down to selected files first and reports indices into that
filtered list; links are never filtered on their own.

Rules:
    1. Episode requested: the first selected video whose file name (or, failing
       that, full path) yields that episode number. PTT parses first, an
       SxxEyy regex is the fallback.
    2. Otherwise, including when no file carried the requested episode: the
       largest selected video.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import PTT

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = ('.mkv', '.mp4', '.avi', '.mov', '.m4v')

EPISODE_FALLBACK_PATTERN = re.compile(r'S(\d{1,2})\s*(?:E|EP|\s)\s*(\d{1,3})', re.IGNORECASE)


@dataclass(frozen=True)
class FileMatch:
    """A matched file and its aligned hoster link."""
    index: int
    file: Dict[str, Any]
    link: str

    @property
    def path(self) -> str:
        return self.file.get('path') or ''


def is_video(path: str) -> bool:
    return (path or '').lower().endswith(VIDEO_EXTENSIONS)


def is_selected(file: Dict[str, Any]) -> bool:
    """Files without a selection flag are treated as selected."""
    return file.get('selected', 1) == 1


def _episode_in(text: str) -> Optional[int]:
    parsed = PTT.parse_title(text)
    episodes = parsed.get('episodes') or []
    if episodes:
        return int(episodes[0])

    match = EPISODE_FALLBACK_PATTERN.search(text)
    if match:
        return int(match.group(2))

    return None


def episode_from_filename(path: str) -> Optional[int]:
    """
    Derive an episode number from a file path.

    The file name is tried first; releases that carry the episode tag on
    their folder ("/Show.S01E03/video.mkv") fall back to the whole path.

    Args:
        path: Provider file path, e.g. "/Show.S01E02.1080p.mkv"

    Returns:
        Episode number, or None when neither name nor path carries one

    Example:
        >>> episode_from_filename('/Show.S01E02.1080p.mkv')
        2
        >>> episode_from_filename('/Show.S01E03/video.mkv')
        3
        >>> episode_from_filename('/Movie.2023.720p.mkv') is None
        True
    """
    name = posixpath.basename(path or '')
    if not name:
        return None

    episode = _episode_in(name)
    if episode is None and name != path.strip('/'):
        episode = _episode_in(path)
    return episode


def _video_candidates(files: Sequence[Dict[str, Any]]) -> List[Tuple[int, Dict[str, Any]]]:
    """(index into selected files, file) for every selected video."""
    selected = [f for f in files if isinstance(f, dict) and is_selected(f)]
    return [(i, f) for i, f in enumerate(selected) if is_video(f.get('path') or '')]


def _largest(candidates: List[Tuple[int, Dict[str, Any]]]) -> Tuple[int, Dict[str, Any]]:
    return max(candidates, key=lambda item: item[1].get('bytes') or 0)


def select_file(
    files: Optional[Sequence[Dict[str, Any]]],
    links: Optional[Sequence[str]],
    episode: Optional[int] = None
) -> Optional[FileMatch]:
    """
    Pick the file to stream and its hoster link.

    Args:
        files: Provider file list
        links: Provider link list, aligned with the selected files
        episode: Requested episode number, None for movies

    Returns:
        FileMatch, or None when no file qualifies (or its link is missing)
    """
    if not files or not links:
        return None

    candidates = _video_candidates(files)
    if not candidates:
        return None

    chosen: Optional[Tuple[int, Dict[str, Any]]] = None

    if episode:
        for index, file in candidates:
            if episode_from_filename(file.get('path') or '') == episode:
                chosen = (index, file)
                break

    if chosen is None:
        chosen = _largest(candidates)

    index, file = chosen
    if index >= len(links) or not links[index]:
        logger.debug(f"No link aligned with file #{index} ({file.get('path')}); {len(links)} links known")
        return None

    return FileMatch(index=index, file=file, link=links[index])
