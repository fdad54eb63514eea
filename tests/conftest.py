import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from voicescreen.interview.testing import MockMongoClient  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_mock_mongo():
    MockMongoClient.instances.clear()
    yield
    MockMongoClient.instances.clear()
