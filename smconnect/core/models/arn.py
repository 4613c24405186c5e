"""
ResourceIdentifier — a parsed SageMaker ARN.

    arn:<partition>:sagemaker:<region>:<account>:<type>/<path...>

Only ``space`` identifiers are accepted by the bridge. An ``app``
identifier is convertible (see ``codec.normalize_to_space``) but not
valid as-is.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ResourceType(StrEnum):
    SPACE = "space"
    APP = "app"


class ResourceIdentifier(BaseModel):
    """Structured ARN. Immutable; normalization returns a new instance."""

    model_config = ConfigDict(frozen=True)

    partition: str = "aws"
    service: str = "sagemaker"
    region: str
    account: str
    resource_type: ResourceType
    resource_path: tuple[str, ...]

    @property
    def is_space(self) -> bool:
        return self.resource_type == ResourceType.SPACE

    @property
    def domain(self) -> str:
        return self.resource_path[0] if self.resource_path else ""

    @property
    def space_name(self) -> str:
        return self.resource_path[1] if len(self.resource_path) > 1 else ""

    def __str__(self) -> str:
        resource = "/".join((self.resource_type.value, *self.resource_path))
        return (
            f"arn:{self.partition}:{self.service}:{self.region}:"
            f"{self.account}:{resource}"
        )
