"""
Database models for Tamilarr
"""

from .base import Base
from .media_identity import MediaIdentity
from .release_candidate import ReleaseCandidate, SEASON_PACK_START, SEASON_PACK_END
from .magnet_record import MagnetRecord
from .provider_snapshot import ProviderSnapshot, ProviderStatus, TERMINAL_FAILURE_STATUSES
from .resolution_lock import ResolutionLock

__all__ = [
    'Base', 'MediaIdentity', 'ReleaseCandidate', 'SEASON_PACK_START', 'SEASON_PACK_END',
    'MagnetRecord', 'ProviderSnapshot', 'ProviderStatus', 'TERMINAL_FAILURE_STATUSES',
    'ResolutionLock'
]
