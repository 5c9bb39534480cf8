"""
API Response Schemas

Pydantic models for the addon protocol responses and the resolve endpoint.
Used for OpenAPI documentation and response serialization.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


# ============================================================================
# Addon Protocol Responses
# ============================================================================

class StreamDescriptor(BaseModel):
    """
    One playable option shown by the media-center client.

    A debrid descriptor carries ``url`` (direct link or resolve link); a
    peer-to-peer descriptor carries ``infoHash`` and ``sources``.
    """
    name: str = Field(..., description="Short label, e.g. '[RD+] 1080p'")
    title: str = Field(..., description="Multi-line details shown under the label")
    url: Optional[str] = Field(None, description="Direct or resolve URL (debrid)")
    info_hash: Optional[str] = Field(None, alias="infoHash", description="Release infohash (peer-to-peer)")
    sources: Optional[List[str]] = Field(None, description="Tracker and DHT sources (peer-to-peer)")
    quality: Optional[str] = Field(None, description="Resolution label")
    language: Optional[str] = Field(None, description="Audio language label")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "name": "[RD+] 1080p",
                "title": "S01 | Episode 02 | Tamil\n1080p\nShow.S01E02.1080p.mkv",
                "url": "https://download.real-debrid.com/d/ABC/Show.S01E02.1080p.mkv",
                "quality": "1080p",
                "language": "Tamil"
            }
        }
    }

    @property
    def is_debrid(self) -> bool:
        return self.info_hash is None


class StreamsResponse(BaseModel):
    """Stream listing for one title or episode."""
    streams: List[StreamDescriptor] = Field(default_factory=list)


class MetaPreview(BaseModel):
    """Catalog entry for one movie or series."""
    id: str = Field(..., description="IMDb id, e.g. 'tt1234567'")
    type: str
    name: str
    poster: Optional[str] = None
    release_info: Optional[str] = Field(None, alias="releaseInfo", description="Release year")

    model_config = {"populate_by_name": True}


class CatalogResponse(BaseModel):
    """Catalog listing."""
    metas: List[MetaPreview] = Field(default_factory=list)


class ManifestResponse(BaseModel):
    """Addon manifest."""
    id: str
    version: str
    name: str
    description: str
    resources: List[str]
    types: List[str]
    id_prefixes: List[str] = Field(..., alias="idPrefixes")
    catalogs: List[Dict[str, Any]] = Field(default_factory=list)
    behavior_hints: Dict[str, Any] = Field(default_factory=dict, alias="behaviorHints")

    model_config = {"populate_by_name": True}


# ============================================================================
# Resolve Responses
# ============================================================================

class ResolvePendingResponse(BaseModel):
    """Answer of the resolve endpoint when no URL is available yet."""
    message: str = Field(..., description="Human-readable retry hint")
    status: Optional[str] = Field(None, description="Last provider status, when known")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "RD still preparing this stream. Please retry shortly.",
                "status": "downloading"
            }
        }
    }
