"""
API Schemas Package

Contains Pydantic models for API responses.
These schemas are used for OpenAPI documentation and serialization.
"""

from tamilarr.schemas.responses import (
    StreamDescriptor,
    StreamsResponse,
    ManifestResponse,
    MetaPreview,
    CatalogResponse,
    ResolvePendingResponse,
)

__all__ = [
    'StreamDescriptor',
    'StreamsResponse',
    'ManifestResponse',
    'MetaPreview',
    'CatalogResponse',
    'ResolvePendingResponse',
]
