"""
Addon Protocol API Routes

This module provides the routes a Stremio-compatible media-center client
talks to:
- Addon manifest
- Catalogs of indexed movies and series
- Stream listing for a movie or an episode
- On-demand debrid resolution (redirects to the direct URL)

Endpoints:
    GET /manifest.json                       - Addon manifest
    GET /catalog/{type}/{id}.json            - Indexed titles of one type
    GET /stream/{type}/{id}.json             - Streams for a movie or episode
    GET /resolve/{infohash}/{episode}        - Resolve a release, 302 to the file

Ids:
    movie:  tt1234567
    series: tt1234567:<season>:<episode>
    Both may be prefixed with the addon id ("<addon id>:tt1234567").
"""

import logging
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from tamilarr.config import Config
from tamilarr.database import get_db
from tamilarr.models import MediaIdentity
from tamilarr.schemas.responses import (
    CatalogResponse,
    ManifestResponse,
    MetaPreview,
    ResolvePendingResponse,
    StreamsResponse,
)
from tamilarr.services.debrid_client import RealDebridClient
from tamilarr.services.resolution_engine import DebridResolutionEngine
from tamilarr.services.stream_assembler import StreamAssembler
from tamilarr.services.tracker_list import get_tracker_list
from tamilarr.utils.fingerprint import normalize_fingerprint

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stremio"])

SUPPORTED_TYPES = ('movie', 'series')

CATALOGS = {
    'series': {'id': 'tamil-series', 'name': 'Tamil Web Series'},
    'movie': {'id': 'tamil-movies', 'name': 'Tamil Movies'},
}


# ============================================================================
# Dependencies
# ============================================================================

def get_debrid_client() -> Optional[RealDebridClient]:
    """Provider client, None when no API key is configured."""
    if not Config.is_debrid_enabled():
        return None
    return RealDebridClient(api_key=Config.REAL_DEBRID_API_KEY)


def get_resolution_engine(
    db: Session = Depends(get_db),
    client: Optional[RealDebridClient] = Depends(get_debrid_client)
) -> Optional[DebridResolutionEngine]:
    if client is None:
        return None
    return DebridResolutionEngine(db, client)


def get_trackers() -> List[str]:
    return get_tracker_list().get_trackers()


def parse_media_id(media_type: str, media_id: str) -> Optional[Tuple[str, Optional[int], Optional[int]]]:
    """
    Split a client id into (imdb id, season, episode).

    Args:
        media_type: "movie" or "series"
        media_id: Client id, optionally prefixed with the addon id

    Returns:
        Tuple, or None when the id is not one this addon serves

    Example:
        >>> parse_media_id('series', 'tt0000001:1:2')
        ('tt0000001', 1, 2)
        >>> parse_media_id('movie', 'tt0000001')
        ('tt0000001', None, None)
    """
    parts = media_id.split(':')
    if parts and parts[0] == Config.ADDON_ID:
        parts = parts[1:]

    if not parts or not parts[0].startswith('tt'):
        return None

    imdb_id = parts[0]
    if media_type != 'series':
        return imdb_id, None, None

    if len(parts) < 3:
        return None
    try:
        return imdb_id, int(parts[1]), int(parts[2])
    except ValueError:
        return None


# ============================================================================
# Routes
# ============================================================================

@router.get("/manifest.json", response_model=ManifestResponse)
async def get_manifest():
    """Addon manifest: catalog and stream resources for movies and series."""
    return ManifestResponse(
        id=Config.ADDON_ID,
        version=Config.APP_VERSION,
        name=Config.ADDON_NAME,
        description=Config.ADDON_DESCRIPTION,
        resources=['catalog', 'stream'],
        types=list(SUPPORTED_TYPES),
        id_prefixes=[Config.ADDON_ID, 'tt'],
        catalogs=[
            {'type': media_type, 'id': catalog['id'], 'name': catalog['name']}
            for media_type, catalog in CATALOGS.items()
        ],
        behavior_hints={'configurable': False, 'adult': False},
    )


@router.get(
    "/catalog/{media_type}/{catalog_id}.json",
    response_model=CatalogResponse,
    response_model_exclude_none=True
)
async def get_catalog(media_type: str, catalog_id: str, db: Session = Depends(get_db)):
    """
    List indexed titles of one type, most recently updated first.

    Returns:
        {"metas": [...]}; 404 for a catalog the manifest does not declare
    """
    catalog = CATALOGS.get(media_type)
    if catalog is None or catalog['id'] != catalog_id:
        return JSONResponse(status_code=404, content={"metas": []})

    identities = MediaIdentity.with_releases(db, media_type, limit=Config.CATALOG_LIMIT)
    return CatalogResponse(metas=[
        MetaPreview(
            id=identity.imdb_id,
            type=media_type,
            name=identity.title,
            poster=identity.poster,
            release_info=str(identity.year) if identity.year else None,
        )
        for identity in identities
    ])


@router.get(
    "/stream/{media_type}/{media_id}.json",
    response_model=StreamsResponse,
    response_model_exclude_none=True
)
async def get_streams(
    media_type: str,
    media_id: str,
    db: Session = Depends(get_db),
    engine: Optional[DebridResolutionEngine] = Depends(get_resolution_engine),
    trackers: List[str] = Depends(get_trackers)
):
    """
    List streams for a movie or an episode.

    Returns:
        {"streams": [...]}; empty when the id is unknown
    """
    if media_type not in SUPPORTED_TYPES:
        return JSONResponse(status_code=404, content={"streams": []})

    parsed = parse_media_id(media_type, media_id)
    if parsed is None:
        return StreamsResponse()
    imdb_id, season, episode = parsed

    try:
        identity = MediaIdentity.find_by_imdb_id(db, imdb_id)
        if identity is None:
            logger.debug(f"No identity known for {imdb_id}")
            return StreamsResponse()

        assembler = StreamAssembler(db, engine=engine, trackers=trackers)
        streams = await assembler.build_streams(identity, media_type, season, episode)
        return StreamsResponse(streams=streams)

    except Exception as e:
        logger.exception(f"Failed to build streams for {media_type}/{media_id}: {e}")
        return JSONResponse(status_code=500, content={"streams": []})


@router.get(
    "/resolve/{fingerprint}/{episode}",
    responses={
        302: {"description": "Redirect to the direct file URL"},
        400: {"model": ResolvePendingResponse, "description": "Invalid infohash or debrid disabled"},
        503: {"model": ResolvePendingResponse, "description": "Not ready yet, retry later"},
    }
)
async def resolve_stream(
    fingerprint: str,
    episode: int,
    engine: Optional[DebridResolutionEngine] = Depends(get_resolution_engine)
):
    """
    Resolve a release through the debrid provider and redirect to the file.

    Runs the whole provider lifecycle inside the request, bounded by the
    polling deadline. The client is told to retry (503) rather than that the
    stream does not exist.
    """
    if engine is None:
        return JSONResponse(status_code=400, content={"message": "Real-Debrid is not enabled."})

    infohash = normalize_fingerprint(fingerprint)
    if not infohash:
        return JSONResponse(status_code=400, content={"message": "Invalid infohash."})

    result = await engine.resolve(infohash, episode if episode > 0 else None)

    if result.is_ready:
        return RedirectResponse(url=result.url, status_code=302, headers={"Cache-Control": "no-store"})

    body = ResolvePendingResponse(message=result.message, status=result.provider_status)
    return JSONResponse(status_code=503, content=body.model_dump(exclude_none=True))
