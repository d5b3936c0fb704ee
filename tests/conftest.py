"""
Root Conftest - Shared Fixtures for All Tests

Provides:
- sys.path setup for the flat backend layout (src/backend)
- Environment configuration
"""

import os
import sys
from pathlib import Path

import pytest

# Add project paths to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
SRC_PATH = PROJECT_ROOT / "src"
BACKEND_PATH = SRC_PATH / "backend"

sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(BACKEND_PATH))

# Settings are read at import time; keep tests off the on-disk database
os.environ.setdefault("NOTIFICATION_STORE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("NOTIFICATION_PROCESSOR_ENABLED", "false")


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def project_root():
    """Return project root path"""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def backend_path():
    """Return backend path (src/backend)"""
    return BACKEND_PATH


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment variables"""
    os.environ.setdefault("TESTING", "1")
    os.environ.setdefault("LOG_LEVEL", "WARNING")

    yield
