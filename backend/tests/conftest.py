"""
Pytest configuration for backend tests.

This file configures pytest for the Tamilarr test suite, including
markers and the import path of the tamilarr package.
"""

import sys
from pathlib import Path

# Add backend directory to Python path for imports
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
