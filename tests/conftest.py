"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.ordering.outline import CourseOutline  # noqa: E402
from src.ordering.store import DraftOverlay, EntityStore  # noqa: E402
from tests.factories import FakeContentApi, activity, section  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def two_section_outline():
    """S1=[a, b], S2=[x], all confirmed."""
    entities = EntityStore([
        section("S1", 0),
        section("S2", 1),
        activity("a", "S1", 0),
        activity("b", "S1", 1),
        activity("x", "S2", 0),
    ])
    return CourseOutline(entities, DraftOverlay())


@pytest.fixture
def server_payloads():
    """Sections and contents as the content API returns them."""
    sections = [
        {"id": "S1", "name": "Introduction", "sequence": 0, "idGroup": "g-1"},
        {"id": "S2", "name": "Basics", "sequence": 1, "idGroup": "g-1"},
    ]
    contents = [
        {"id": "a", "idSection": "S1", "name": "Welcome video", "type": "VIDEO", "sequence": 0},
        {"id": "b", "idSection": "S1", "name": "Syllabus", "type": "PDF", "sequence": 1},
        {"id": "c", "idSection": "S1", "name": "Quiz 0", "type": "QUIZ", "sequence": 2},
        {"id": "x", "idSection": "S2", "name": "Reading", "type": "LINK", "sequence": 0},
        {"id": "other", "idSection": "S-other-group", "name": "Elsewhere", "type": "PDF", "sequence": 0},
    ]
    return sections, contents


@pytest.fixture
def fake_api(server_payloads):
    sections, contents = server_payloads
    return FakeContentApi(sections, contents)
