"""Shared pytest configuration and fixtures for the recorder test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def mock_sound_device():
    """A fake sounddevice backend with two microphones and one speaker."""
    from tests.infrastructure.mocks.audio_mocks import MockSoundDevice
    return MockSoundDevice()
