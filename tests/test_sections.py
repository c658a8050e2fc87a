import string

from hypothesis import given
from hypothesis import strategies as st

from worldwiki.domain.metadata_source import MarkerTextMetadata, StructuredMetadata, load_metadata_source
from worldwiki.parsing import extract_key_value_list, extract_list, extract_section, parse_marker_text

FULL_TEXT = """CONTENT:
Aethros drifts above the Sundering Sea.

Its people trade in mistglass.
CATEGORIES:
- Landscapes & Terrains
* Culture
---
##
CLICKABLE_TERMS:
Sundering Sea
Mistglass ##
RELATED_CONCEPTS:
Drift Cartography | Mapping places that move | extra
Cloud Tithes: Taxes paid in vapour
BASIC_FACTS:
Altitude | 3,200 m
Era - Third Drift
"""


def test_extract_section_missing_start_marker():
    assert extract_section("no markers here", "CATEGORIES:", "CLICKABLE_TERMS:") is None


def test_extract_section_runs_to_end_without_end_marker():
    assert extract_section("CONTENT:\n  partial prose", "CONTENT:", "CATEGORIES:") == "partial prose"


def test_extract_section_falls_back_to_case_insensitive_match():
    text = "categories:\nCulture\nclickable_terms:\nMistglass"
    assert extract_section(text, "CATEGORIES:", "CLICKABLE_TERMS:") == "Culture"


def test_extract_list_drops_bullets_rules_and_hashes():
    assert extract_list(FULL_TEXT, "CATEGORIES:", "CLICKABLE_TERMS:") == ["Landscapes & Terrains", "Culture"]
    assert extract_list(FULL_TEXT, "CLICKABLE_TERMS:", "RELATED_CONCEPTS:") == ["Sundering Sea", "Mistglass"]


def test_extract_list_drops_marker_echoes():
    text = "CATEGORIES:\nCulture\nCATEGORIES: again\nCLICKABLE_TERMS:"
    assert extract_list(text, "CATEGORIES:", "CLICKABLE_TERMS:") == ["Culture"]


def test_key_value_list_separators():
    related = extract_key_value_list(FULL_TEXT, "RELATED_CONCEPTS:", "BASIC_FACTS:")
    assert related == [
        {"term": "Drift Cartography", "description": "Mapping places that move"},
        {"term": "Cloud Tithes", "description": "Taxes paid in vapour"},
    ]

    facts = extract_key_value_list(FULL_TEXT, "BASIC_FACTS:", None)
    assert facts == [
        {"name": "Altitude", "value": "3,200 m"},
        {"name": "Era", "value": "Third Drift"},
    ]


def test_key_value_line_without_separator_keeps_key():
    assert extract_key_value_list("BASIC_FACTS:\nUnmapped", "BASIC_FACTS:", None) == [
        {"name": "Unmapped", "value": ""}
    ]


def test_parse_marker_text_on_partial_buffer():
    parsed = parse_marker_text("CONTENT:\nAethros drifts")
    assert parsed == {
        "content": "Aethros drifts",
        "categories": [],
        "clickable_terms": [],
        "related_concepts": [],
        "basic_facts": [],
    }


def test_marker_text_source_extracts_page_fields():
    fields = MarkerTextMetadata(buffer=FULL_TEXT).extract()
    assert fields.content.startswith("Aethros drifts above the Sundering Sea.")
    assert fields.metadata.categories == ["Landscapes & Terrains", "Culture"]
    assert fields.metadata.related_concepts[0].term == "Drift Cartography"
    assert fields.metadata.basic_facts[1].value == "Third Drift"


def test_structured_source_is_lenient():
    source = StructuredMetadata(
        data={
            "categories": ["Culture"],
            "clickableTerms": "not a list",
            "relatedConcepts": [{"term": "Drift"}, {"description": "no term"}, "junk"],
            "basicFacts": [{"name": "Altitude", "value": "high"}],
        }
    )
    metadata = source.extract().metadata
    assert metadata.categories == ["Culture"]
    assert metadata.clickable_terms == []
    assert [concept.term for concept in metadata.related_concepts] == ["Drift"]
    assert metadata.basic_facts[0].name == "Altitude"


def test_structured_source_tolerates_null_and_non_string_values():
    source = StructuredMetadata(
        data={
            "categories": ["Culture", None],
            "relatedConcepts": [{"term": "x", "description": None}, {"term": 7, "description": "bad term"}],
            "basicFacts": [{"name": "Population", "value": 18000}, {"name": None, "value": "v"}],
        }
    )
    metadata = source.extract().metadata
    assert metadata.categories == ["Culture"]
    assert [(c.term, c.description) for c in metadata.related_concepts] == [("x", "")]
    assert [(f.name, f.value) for f in metadata.basic_facts] == [("Population", "18000")]


def test_metadata_source_discriminates_on_kind():
    assert isinstance(load_metadata_source({"kind": "marker_text", "buffer": "CONTENT:\nx"}), MarkerTextMetadata)
    assert isinstance(load_metadata_source({"kind": "structured", "data": {}}), StructuredMetadata)


# Items never contain ':' so generated text cannot forge a marker
_item = st.text(alphabet=string.ascii_letters + " ", min_size=1, max_size=15).filter(lambda s: s.strip())
_items = st.lists(_item, min_size=1, max_size=5)


def _render(content: list[str], categories: list[str], terms: list[str], facts: list[str]) -> str:
    return (
        "CONTENT:\n"
        + " ".join(content)
        + "\nCATEGORIES:\n"
        + "\n".join(categories)
        + "\nCLICKABLE_TERMS:\n"
        + "\n".join(terms)
        + "\nRELATED_CONCEPTS:\n"
        + "\nBASIC_FACTS:\n"
        + "\n".join(f"{fact} | {fact}" for fact in facts)
    )


@given(_items, _items, _items, _items, st.data())
def test_completed_sections_survive_longer_buffers(content, categories, terms, facts, data):
    text = _render(content, categories, terms, facts)
    full = parse_marker_text(text)

    cut = data.draw(st.integers(min_value=0, max_value=len(text)))
    prefix = text[:cut]
    partial = parse_marker_text(prefix)

    # A section is complete once the marker that ends it has fully arrived
    if "CATEGORIES:" in prefix:
        assert partial["content"] == full["content"]
    if "CLICKABLE_TERMS:" in prefix:
        assert partial["categories"] == full["categories"]
    if "RELATED_CONCEPTS:" in prefix:
        assert partial["clickable_terms"] == full["clickable_terms"]
    assert parse_marker_text(text) == full
