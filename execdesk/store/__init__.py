"""
Event store collaborators.

- EventStore: structural interface the analytics read snapshots from
- InMemoryEventStore: lock-guarded reference implementation
- load_events: CSV/JSON directory loader with row validation
- write_events: writer for the same directory layout
- SampleDataGenerator: seeded demo dataset
"""

from execdesk.store.memory import EventStore, InMemoryEventStore
from execdesk.store.files import LoadedEvents, load_events, read_records, write_events
from execdesk.store.sample import SampleCounts, SampleData, SampleDataGenerator

__all__ = [
    "EventStore",
    "InMemoryEventStore",
    "LoadedEvents",
    "load_events",
    "read_records",
    "write_events",
    "SampleCounts",
    "SampleData",
    "SampleDataGenerator",
]
