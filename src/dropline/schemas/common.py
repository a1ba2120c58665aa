"""Shared Pydantic configuration for request bodies."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """Request body that rejects unknown JSON fields."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
