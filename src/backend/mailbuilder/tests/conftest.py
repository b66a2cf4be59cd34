"""Fixtures for tests in the mail builder application"""

import io

import pytest


@pytest.fixture
def output():
    """An in-memory binary sink."""
    return io.BytesIO()
