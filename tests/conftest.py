"""Pytest configuration and fixtures for trace viewer tests."""

import pytest
import respx

from tests.fakes import mission_control_api


@pytest.fixture
def respx_mock():
    """Fixture that provides a respx mock router.

    Configuration:
        - assert_all_mocked=False: Allows unmocked requests to pass through.
          Prevents failures from background HTTP calls (e.g., Reflex init).
        - assert_all_called=True: Ensures every mock defined is actually used.
          Catches typos in mock URLs and dead mocks.
    """
    with respx.mock(assert_all_mocked=False, assert_all_called=True) as mock:
        yield mock


@pytest.fixture
def search_api():
    """MissionControl fixture trace without inline child counts."""
    return mission_control_api()


@pytest.fixture
def counting_search_api():
    """MissionControl fixture trace whose spans carry ``span:childCount``."""
    return mission_control_api(supports_child_count=True)
