"""
Boundary contracts for the services the engine reads from but does not own.

The dataset catalog and the blob store live in the surrounding application;
the engine only needs the async shapes below.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from insight_engine.core.schemas import Dataset


@runtime_checkable
class BlobResponse(Protocol):
    """Raw stored file. `content()` and `content_type` are optional extras."""

    async def text(self) -> str:
        ...


@runtime_checkable
class BlobStore(Protocol):
    async def fetch(self, ref: str) -> BlobResponse:
        ...


@runtime_checkable
class DatasetCatalog(Protocol):
    async def list_datasets(self, filters: Optional[Dict[str, Any]] = None) -> List[Dataset]:
        ...

    async def get_dataset_by_id(self, dataset_id: str) -> Optional[Dataset]:
        ...
