"""Content models and the content store boundary."""

from careermatch.data.content_store import (
    ContentStore,
    InMemoryContentStore,
    get_content_store,
)

__all__ = ["ContentStore", "InMemoryContentStore", "get_content_store"]
