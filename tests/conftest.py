import os

import pytest

# Keep the test run independent of any developer .env.
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from codezero.services.relay import RelayHub  # noqa: E402


@pytest.fixture
def hub():
    """A fresh in-memory relay. Its dispatcher task is created lazily on the test's loop."""
    return RelayHub()
