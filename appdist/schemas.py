"""
Pydantic request bodies for the JSON endpoints.

Fields are optional on purpose: presence is checked by the domain layer so
clients get the same messages as for multipart uploads.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateProjectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    platforms: Any = None
    rn_platforms: Any = Field(default=None, alias="rnPlatforms")


class UpdateProjectRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    platforms: Any = None


class UpdateRnPlatformsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rn_platforms: Any = Field(default=None, alias="rnPlatforms")


class UpdateEnvironmentsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active_environments: Any = Field(default=None, alias="activeEnvironments")
