"""
Base model classes for careermatch content models.

Provides common fields and configuration shared by the content the
core reads from the content store.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


def generate_id() -> str:
    """Generate an opaque identifier for new content."""
    return uuid.uuid4().hex


class TimestampMixin(BaseModel):
    """Mixin providing a creation timestamp."""

    created_at: datetime = Field(default_factory=datetime.utcnow)


class ContentModel(TimestampMixin):
    """
    Base model for identified user content (stories, documents, ...).

    Identifiers are opaque strings, unique within their entity type.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    id: str = Field(default_factory=generate_id)


class EmbeddedModel(BaseModel):
    """
    Base model for value objects nested inside other content.

    Use this for models that have no identity of their own.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )
