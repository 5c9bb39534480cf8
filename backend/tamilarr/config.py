"""
Configuration Management for Tamilarr

This module centralizes all application configuration: the debrid provider
credentials, resolution polling windows, tracker list source and addon
identity. Every value is read from an environment variable and has a default
suitable for a single-container deployment.
"""

import os
from typing import List


class Config:
    """Settings read once at import time from the environment."""

    # =============================================================================
    # APPLICATION SETTINGS
    # =============================================================================
    APP_VERSION = "1.0.0"
    APP_TITLE = "Tamilarr"
    APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT = int(os.getenv("APP_PORT", "7000"))

    # Base URL the media-center client uses to reach this service.
    # Used to build on-demand resolve links inside stream descriptors.
    PUBLIC_URL = os.getenv("PUBLIC_URL", f"http://localhost:{APP_PORT}").rstrip("/")

    # =============================================================================
    # DEVELOPMENT MODE
    # =============================================================================
    DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    # =============================================================================
    # LOGGING
    # =============================================================================
    # "text" for human-readable lines, "json" for structured output
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()

    # =============================================================================
    # CORS CONFIGURATION
    # =============================================================================
    # Media-center clients fetch from arbitrary origins, so the default is open
    CORS_ORIGINS_STR = os.getenv("CORS_ORIGINS", "")
    CORS_ORIGINS: List[str] = (
        CORS_ORIGINS_STR.split(",") if CORS_ORIGINS_STR else ["*"]
    )

    # =============================================================================
    # DATABASE CONFIGURATION
    # =============================================================================
    _db_path = "./data/tamilarr.db" if os.path.exists("./data") else "./backend/data/tamilarr.db"
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{_db_path}"
    )

    # =============================================================================
    # ADDON MANIFEST
    # =============================================================================
    ADDON_ID = os.getenv("ADDON_ID", "community.tamilarr")
    ADDON_NAME = os.getenv("ADDON_NAME", "Tamilarr")
    ADDON_DESCRIPTION = os.getenv(
        "ADDON_DESCRIPTION",
        "Tamil movies and web series from forum releases, with Real-Debrid playback"
    )

    # Most recently updated identities listed per catalog
    CATALOG_LIMIT = int(os.getenv("CATALOG_LIMIT", "100"))

    # =============================================================================
    # DEBRID PROVIDER (Real-Debrid)
    # =============================================================================
    REAL_DEBRID_API_KEY = os.getenv("REAL_DEBRID_API_KEY", "")
    REAL_DEBRID_BASE_URL = os.getenv(
        "REAL_DEBRID_BASE_URL", "https://api.real-debrid.com/rest/1.0"
    ).rstrip("/")

    # Per-request timeout against the provider API (seconds)
    DEBRID_REQUEST_TIMEOUT = float(os.getenv("DEBRID_REQUEST_TIMEOUT", "15"))

    # Retries for transient provider faults (timeouts, 429, 502-504)
    DEBRID_MAX_RETRIES = int(os.getenv("DEBRID_MAX_RETRIES", "2"))

    # Provider allows 250 requests per minute
    DEBRID_RATE_PER_SECOND = float(os.getenv("DEBRID_RATE_PER_SECOND", "4"))
    DEBRID_RATE_BURST = int(os.getenv("DEBRID_RATE_BURST", "10"))

    # =============================================================================
    # RESOLUTION ENGINE
    # =============================================================================
    # Total time a single resolve request may spend polling (seconds)
    RESOLVE_POLL_DEADLINE = float(os.getenv("RESOLVE_POLL_DEADLINE", "180"))

    # Fixed delay between two status polls (seconds)
    RESOLVE_POLL_INTERVAL = float(os.getenv("RESOLVE_POLL_INTERVAL", "3"))

    # Delay between add-magnet and select-files (seconds)
    RESOLVE_SETTLE_DELAY = float(os.getenv("RESOLVE_SETTLE_DELAY", "1"))

    # A lock with no provider job id older than this is considered abandoned
    RESOLUTION_LOCK_STALE_SECONDS = int(os.getenv("RESOLUTION_LOCK_STALE_SECONDS", "600"))

    # =============================================================================
    # PEER-TO-PEER SOURCES
    # =============================================================================
    TRACKER_LIST_URL = os.getenv(
        "TRACKER_LIST_URL",
        "https://raw.githubusercontent.com/ngosang/trackerslist/master/trackers_best.txt"
    )
    TRACKER_FETCH_TIMEOUT = float(os.getenv("TRACKER_FETCH_TIMEOUT", "10"))

    # Tracker list refresh period (seconds)
    TRACKER_REFRESH_INTERVAL = int(os.getenv("TRACKER_REFRESH_INTERVAL", "3600"))

    # Also list raw peer-to-peer streams when a debrid provider is configured
    INCLUDE_P2P_WITH_DEBRID = os.getenv("INCLUDE_P2P_WITH_DEBRID", "false").lower() == "true"

    @classmethod
    def is_debrid_enabled(cls) -> bool:
        """Whether a debrid provider API key is configured."""
        return bool(cls.REAL_DEBRID_API_KEY)

    @classmethod
    def validate(cls) -> bool:
        """False when a value would make the service unusable."""
        if not cls.DATABASE_URL:
            return False

        if cls.APP_PORT < 1 or cls.APP_PORT > 65535:
            return False

        if cls.RESOLVE_POLL_INTERVAL <= 0 or cls.RESOLVE_POLL_DEADLINE <= 0:
            return False

        return True

    @classmethod
    def get_summary(cls) -> dict:
        """Settings safe to log at startup (no API key, no DB credentials)."""
        return {
            "app_version": cls.APP_VERSION,
            "dev_mode": cls.DEV_MODE,
            "debug": cls.DEBUG,
            "app_host": cls.APP_HOST,
            "app_port": cls.APP_PORT,
            "public_url": cls.PUBLIC_URL,
            "database_url": cls.DATABASE_URL.split("@")[-1] if "@" in cls.DATABASE_URL else "sqlite",
            "debrid_enabled": cls.is_debrid_enabled(),
            "resolve_poll_deadline": cls.RESOLVE_POLL_DEADLINE,
            "resolve_poll_interval": cls.RESOLVE_POLL_INTERVAL,
            "lock_stale_seconds": cls.RESOLUTION_LOCK_STALE_SECONDS,
            "include_p2p_with_debrid": cls.INCLUDE_P2P_WITH_DEBRID,
            "log_format": cls.LOG_FORMAT,
        }

