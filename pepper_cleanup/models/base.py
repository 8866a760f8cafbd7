"""Pydantic base model shared by domain models and API payloads."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """snake_case in Python, camelCase on the wire.

    FastAPI serializes response models by alias, so routers can return
    these directly.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible camelCase dict without unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, pretty: bool = False) -> str:
        return self.model_dump_json(
            by_alias=True,
            exclude_none=True,
            indent=2 if pretty else None,
        )
