"""
Base Pydantic models for shikamaru.

Provides common configuration and base classes for all shikamaru models.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ShikamaruBaseModel(BaseModel):
    """Base model for all shikamaru Pydantic models.

    Configuration:
        - strict: Strict type coercion (no implicit conversions)
        - validate_assignment: Validate on attribute assignment
        - extra: Reject unknown fields
        - populate_by_name: Allow field aliases
        - revalidate_instances: Trust model instances (performance)
    """

    model_config = ConfigDict(
        strict=True,
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
        revalidate_instances="never",
    )


class ImmutableModel(ShikamaruBaseModel):
    """Immutable base model for value objects that should not change after creation."""

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="forbid",
        populate_by_name=True,
        revalidate_instances="never",
    )
