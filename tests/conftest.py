"""
Shared fixtures: the whole directory subsystem on in-memory adapters.
"""

import pytest

from campus_directory.core.seed import SeedData
from campus_directory.core.service import build_service
from campus_directory.core.store import InMemoryKeyValueStore
from campus_directory.core.table import InMemoryReferenceTable, InMemoryTable
from campus_directory.core.telemetry import Telemetry

HEADER = ["Campus", "Recipient"]


@pytest.fixture
def seed():
    """Small seed table so tests stay readable."""
    return SeedData(
        version="test",
        recipients={
            "bernal": ["david.laboy@nisd.net", "Marla.Reynolds@nisd.net"],
            "briscoe": ["joe.bishop@nisd.net"],
            "hobby magnet": ["jaime.heye@nisd.net"],
        },
        folder_references={
            "bernal": "seed-folder-bernal",
            "briscoe": "seed-folder-briscoe",
            "hobby magnet": "seed-folder-hobby-magnet",
        },
    )


@pytest.fixture
def empty_seed():
    return SeedData(version="empty")


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def telemetry(store):
    return Telemetry(store)


@pytest.fixture
def table():
    """Recipients sheet that does not exist yet."""
    return InMemoryTable("Recipients")


@pytest.fixture
def reference_table():
    return InMemoryReferenceTable({
        "bernal": "folder-bernal",
        "briscoe": "folder-briscoe",
        "hobby magnet": "folder-hobby-magnet",
        "connally": "folder-connally",
    })


@pytest.fixture
def service(store, table, reference_table, seed):
    return build_service(store, table, reference_table, seed=seed)
