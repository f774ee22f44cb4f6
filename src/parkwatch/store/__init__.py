"""Record-store layer.

The core depends only on the :class:`RecordStore` contract; the in-memory
implementation is the single source of truth for tests and demos.
"""

from parkwatch.store.base import RecordStore
from parkwatch.store.memory import InMemoryRecordStore
from parkwatch.store.seed import seed_demo_facilities

__all__ = ["InMemoryRecordStore", "RecordStore", "seed_demo_facilities"]
