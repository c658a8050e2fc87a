"""Inbound request payloads and the caller they came from."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

import pydantic
from pydantic import Field

from worldwiki.core.base import ValidationErrorDetails
from worldwiki.core.errors import ValidationError

from .base import WireModel, capitalize_title
from .world import WorldFacts

SEED_TITLE_WORDS = 5
API_KEY_PATTERN = r"^sk-[a-zA-Z0-9_-]{20,}$"

M = TypeVar("M", bound=pydantic.BaseModel)


class GenerationKind(str, Enum):
    SEED = "seed"  # sentence that starts a new world
    TERM = "term"  # term clicked on an existing page


@dataclass(frozen=True)
class Caller:
    """Who is asking, as established by the transport."""

    identity: str | None
    ip: str

    @property
    def quota_subject(self) -> str:
        """Key the daily quota is counted under. Anonymous callers count by IP."""
        return self.identity or f"ip:{self.ip}"


class GenerationRequest(WireModel):
    input: str = Field(min_length=1, max_length=5000)
    kind: GenerationKind = Field(alias="type")
    context: str | None = Field(default=None, max_length=10000)
    world_facts: WorldFacts | None = Field(default=None, alias="worldbuildingHistory")

    @property
    def title(self) -> str:
        if self.kind == GenerationKind.SEED:
            words = " ".join(self.input.split(" ")[:SEED_TITLE_WORDS])
            return capitalize_title(re.sub(r"[.,!?]$", "", words))
        return capitalize_title(self.input)


class SectionRequest(WireModel):
    section_title: str = Field(min_length=1, max_length=200)
    page_title: str = Field(min_length=1, max_length=200)
    page_content: str = Field(min_length=1, max_length=50000)
    world_facts: WorldFacts | None = Field(default=None, alias="worldbuildingHistory")

    @property
    def title(self) -> str:
        return capitalize_title(self.section_title)


class ApiKeyPayload(WireModel):
    api_key: str = Field(pattern=API_KEY_PATTERN)


def parse_payload(model: type[M], payload: Any, operation: str) -> M:
    """Validate a raw JSON body, raising our ValidationError on the first problem."""
    if not isinstance(payload, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            ValidationErrorDetails(source="validation", operation=operation, constraint="object"),
        )
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(
            f"{field}: {first['msg']}" if field else first["msg"],
            ValidationErrorDetails(source="validation", operation=operation, field=field, constraint=first["type"]),
        ) from e
