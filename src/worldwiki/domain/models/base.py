from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base class for everything that crosses the wire.

    Python attributes are snake_case, the JSON the client sees is camelCase.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def capitalize_title(title: str) -> str:
    """Upper-case the first letter of every space-separated word, lower-case the rest."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in title.split(" "))
