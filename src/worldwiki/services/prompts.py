"""Prompt text for the upstream generation service."""

from worldwiki.domain.models import (
    ALL_CATEGORIES,
    GenerationKind,
    GenerationRequest,
    PageMetadata,
    SectionRequest,
    WorldFacts,
)

WORLDBUILDING_SYSTEM = """You are a creative worldbuilding agent with deep knowledge of history, mythology, \
cosmology, philosophy, science, and anthropology from diverse cultures.

Some inspirations: Borges: baroque erudition, pseudo-scholarly tone, citations to nonexistent works, \
recursive paradoxes, fascination with infinity.

Pratchett: sly irony, earthy wit, comic undercutting of grandeur, affectionate mockery of institutions.

Von Neumann: crystalline precision, insistence on explicit definitions, logical sequence."""

SECTION_SYSTEM = "Generate concise wiki section content."

CONTEXT_PREVIEW_CHARS = 200
PAGE_PREVIEW_CHARS = 500


def _world(facts: WorldFacts | None, label: str) -> str:
    if facts is None or facts.is_empty():
        return ""
    return f"\n{label}: {facts.summary()}"


def metadata_prompt(request: GenerationRequest, title: str) -> str:
    context = f'\nContext: "{request.context[:CONTEXT_PREVIEW_CHARS]}..."' if request.context else ""
    return (
        f'Generate structured metadata for a wiki page in a possible universe about "{title}". '
        "Be creative and interesting, but not overbearing.\n"
        f'Input: "{request.input}" ({request.kind.value}){context}{_world(request.world_facts, "World context")}\n'
        "\n"
        "Provide:\n"
        f"- 2-4 categories from: {', '.join(ALL_CATEGORIES)}\n"
        "- 5-8 clickableTerms (specific, interesting nouns/concepts)\n"
        "- 2-4 relatedConcepts with descriptions\n"
        "- 3-4 basicFacts (name|value format, e.g., year|3140AD, location|Eastern China)"
    )


def content_prompt(request: GenerationRequest, title: str, metadata: PageMetadata) -> str:
    context = f"\nContext: {request.context[:CONTEXT_PREVIEW_CHARS]}" if request.context else ""
    terms = ", ".join(metadata.clickable_terms[:6])
    facts = ", ".join(f"{fact.name}:{fact.value}" for fact in metadata.basic_facts[:3])
    return (
        f'Generate a wiki article about "{title}" in a possible universe. '
        "Do not imply that the universe is fictional.\n"
        "\n"
        f'Input: "{request.input}" ({request.kind.value}){context}{_world(request.world_facts, "World")}\n'
        "\n"
        "Naturally incorporate:\n"
        f"- Terms: {terms}\n"
        f"- Facts: {facts}\n"
        "\n"
        "Write a detailed and engaging encyclopedic article, with 3-4 paragraphs. Be authoritative and "
        "matter-of-fact, no matter how fantastical the subject. Ensure consistency with the existing "
        "worldbuilding context provided. Output only article content, no formatting."
    )


def section_prompt(request: SectionRequest) -> str:
    return (
        f'Page: "{request.page_title}"\n'
        f"Context: {request.page_content[:PAGE_PREVIEW_CHARS]}...\n"
        f'Section: "{request.title}"{_world(request.world_facts, "World")}\n'
        "\n"
        "Write 2-3 encyclopedic sentences for this section. Match the page tone. Output only content."
    )


def marker_text_prompt(request: GenerationRequest, title: str) -> str:
    """Single-pass prompt asking for every page field under uppercase markers."""
    role = "seed sentence to start the wiki" if request.kind == GenerationKind.SEED else "term to expand upon"
    context = f'The context for this term is: "{request.context}"\n' if request.context else ""
    has_world = request.world_facts is not None and not request.world_facts.is_empty()
    world = f'Existing worldbuilding context: "{request.world_facts.summary()}"\n' if has_world else ""
    consistency = " Ensure consistency with the existing worldbuilding context provided." if has_world else ""
    categories = "\n".join(ALL_CATEGORIES[:8])
    return (
        f"{WORLDBUILDING_SYSTEM}\n\n"
        "Generate a wiki page for a topic within a possible universe. Do not imply that this universe is "
        "fictional! To you and the user it is real.\n\n"
        f'The user has provided the following input: "{request.input}"\n'
        f"This is a {role}.\n"
        f"{context}{world}\n"
        f'Generate a wiki page titled "{title}" with the following EXACT structure and format:\n\n'
        "CONTENT:\n"
        "Write 3-4 paragraphs of detailed and engaging encyclopedic content. Be descriptive and "
        f"matter-of-fact, no matter how absurd the topic.{consistency}\n\n"
        "CATEGORIES:\n"
        f"{categories}\n"
        "Pick 2-4 of the above categories that best fit your content. List them one per line.\n\n"
        "CLICKABLE_TERMS:\n"
        "List 5-8 specific nouns, concepts, or names from your content that would be interesting to explore "
        "further. These must be exact phrases from the content. List them one per line.\n\n"
        "RELATED_CONCEPTS:\n"
        "List 2-4 related topics not directly in the content. Format: term | description\n\n"
        "BASIC_FACTS:\n"
        "List 3-4 basic facts. Format: fact_name | fact_value\n\n"
        "IMPORTANT: You must include ALL sections with their exact headers (CONTENT:, CATEGORIES:, "
        "CLICKABLE_TERMS:, RELATED_CONCEPTS:, BASIC_FACTS:). Do not end abruptly or use ## symbols. "
        "Write naturally, not in JSON format."
    )
