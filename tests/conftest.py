"""
Shared fixtures: in-memory catalog and blob store, plus small sample datasets.
"""
import pytest

from insight_engine.core.config import Settings
from insight_engine.core.performance import PerformanceMonitor
from insight_engine.core.schemas import Dataset
from insight_engine.core.telemetry import RecordingTelemetry


class InMemoryCatalog:
    """Dataset catalog backed by a list."""

    def __init__(self, datasets=None):
        self.datasets = list(datasets or [])

    async def list_datasets(self, filters=None):
        if not filters:
            return list(self.datasets)
        return [d for d in self.datasets if all(getattr(d, k, None) == v for k, v in filters.items())]

    async def get_dataset_by_id(self, dataset_id):
        return next((d for d in self.datasets if d.id == dataset_id), None)


class StoredBlob:
    def __init__(self, payload, content_type="text/csv"):
        self._payload = payload
        self.content_type = content_type

    async def text(self):
        if isinstance(self._payload, bytes):
            return self._payload.decode("utf-8")
        return self._payload

    async def content(self):
        if isinstance(self._payload, bytes):
            return self._payload
        return self._payload.encode("utf-8")


class InMemoryBlobStore:
    """Blob store keyed by file reference; unknown refs raise KeyError."""

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.fetched = []

    async def fetch(self, ref):
        self.fetched.append(ref)
        return StoredBlob(self.files[ref])


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture(autouse=True)
def clear_metrics():
    PerformanceMonitor.clear_metrics()
    yield
    PerformanceMonitor.clear_metrics()


@pytest.fixture
def sales_csv():
    """Two years of monthly sales with a region column."""
    lines = ["date,region,sales,units"]
    regions = ["North", "South", "East", "West"]
    for i in range(24):
        year = 2022 + i // 12
        month = i % 12 + 1
        region = regions[i % 4]
        sales = 1000 + i * 50
        units = 10 + i * 2
        lines.append(f"{year}-{month:02d}-15,{region},{sales},{units}")
    return "\n".join(lines)


@pytest.fixture
def economic_dataset():
    return Dataset(
        id="econ-1",
        title="Economic Indicators",
        description="Quarterly national accounts",
        category="Economics",
        format="csv",
        file="econ.csv",
        date="2024-03-01",
    )


@pytest.fixture
def health_dataset():
    return Dataset(
        id="health-1",
        title="Hospital Admissions",
        description="Admissions by region and year",
        category="Health",
        format="csv",
        file="health.csv",
        date="2023-06-01",
    )


@pytest.fixture
def make_catalog():
    return InMemoryCatalog


@pytest.fixture
def make_blob_store():
    return InMemoryBlobStore
