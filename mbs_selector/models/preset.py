"""
Preset models — named, durable snapshots of a code selection.

``PresetDraft`` is what a caller supplies to ``PresetStore.save()``;
``Preset`` is the stored record with an engine-generated id and timestamps.
The code list is always a copy, never a live view of the engine's state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _validate_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Preset name must be non-empty.")
    return v


class PresetDraft(BaseModel):
    """User-supplied fields of a preset before it is saved."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    selected_codes: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)


class Preset(BaseModel):
    """A saved preset.

    Attributes:
        id: Opaque unique identifier, ``preset-<hex>``.
        name: Display name (not unique).
        description: Optional free text.
        selected_codes: Snapshot copy of the codes at save/update time.
        created_at: UTC time the preset was first saved.
        modified_at: UTC time of the last update; equals ``created_at`` until then.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    selected_codes: list[str] = Field(default_factory=list)
    created_at: datetime
    modified_at: datetime

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)
