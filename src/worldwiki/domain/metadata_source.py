"""Where a page's structured fields come from.

Pages are normally built from a structured metadata object returned by the
upstream service. The single-pass legacy path instead re-parses a marker-text
buffer. Both are modeled as one tagged variant so the orchestrator extracts
page fields the same way regardless of which path produced them.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from worldwiki.parsing import parse_marker_text

from .models.page import PageMetadata


class PageFields(BaseModel):
    """Page fields recovered from a metadata source."""

    content: str = ""
    metadata: PageMetadata = Field(default_factory=PageMetadata)


class StructuredMetadata(BaseModel):
    kind: Literal["structured"] = "structured"
    data: dict[str, Any] = Field(default_factory=dict)

    def extract(self) -> PageFields:
        """Lenient read of the upstream object: any malformed list becomes empty."""
        fields: dict[str, Any] = {}
        for wire_name, attr in (
            ("categories", "categories"),
            ("clickableTerms", "clickable_terms"),
            ("relatedConcepts", "related_concepts"),
            ("basicFacts", "basic_facts"),
        ):
            value = self.data.get(wire_name)
            fields[attr] = value if isinstance(value, list) else []

        fields["related_concepts"] = _pairs(fields["related_concepts"], "term", "description")
        fields["basic_facts"] = _pairs(fields["basic_facts"], "name", "value")
        fields["categories"] = [str(item) for item in fields["categories"] if item is not None]
        fields["clickable_terms"] = [str(item) for item in fields["clickable_terms"] if item is not None]
        return PageFields(metadata=PageMetadata.model_validate(fields))


def _pairs(items: list[Any], key: str, value: str) -> list[dict[str, str]]:
    """Keep items with a non-empty string key; a missing or null value becomes empty."""
    pairs = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get(key), str) or not item[key]:
            continue
        raw = item.get(value)
        pairs.append({key: item[key], value: "" if raw is None else str(raw)})
    return pairs


class MarkerTextMetadata(BaseModel):
    kind: Literal["marker_text"] = "marker_text"
    buffer: str = ""

    def extract(self) -> PageFields:
        parsed = parse_marker_text(self.buffer)
        content = parsed.pop("content")
        return PageFields(content=content, metadata=PageMetadata.model_validate(parsed))


MetadataSource = Annotated[StructuredMetadata | MarkerTextMetadata, Field(discriminator="kind")]

_source_adapter: TypeAdapter[StructuredMetadata | MarkerTextMetadata] = TypeAdapter(MetadataSource)


def load_metadata_source(data: dict[str, Any]) -> StructuredMetadata | MarkerTextMetadata:
    """Build the right variant from its ``kind`` tag."""
    return _source_adapter.validate_python(data)
