"""Pydantic schemas for the run configuration endpoints."""

from pydantic import BaseModel, Field


class ConfigResponse(BaseModel):
    """Stored configuration merged over the defaults."""

    values: dict[str, str] = Field(default_factory=dict)


class ConfigUpdate(BaseModel):
    """Keys to create or overwrite. Keys not listed are left alone."""

    values: dict[str, str] = Field(..., min_length=1)
