"""Deterministic placeholder data for running without an upstream credential."""

from worldwiki.domain.models import BasicFact, PageMetadata, RelatedConcept


def canned_metadata() -> PageMetadata:
    """Metadata used in development mode and whenever the metadata call fails."""
    return PageMetadata(
        categories=["Magic & Mysticism", "Supernatural Phenomena"],
        clickable_terms=[
            "crystal formation",
            "levitation field",
            "magical resonance",
            "astral energy",
            "floating stones",
        ],
        related_concepts=[
            RelatedConcept(
                term="Ethereal Physics",
                description="The study of matter-energy interactions in mystical dimensions",
            ),
            RelatedConcept(term="Crystalline Networks", description="Interconnected systems of magical crystals"),
        ],
        basic_facts=[
            BasicFact(name="Formation", value="Natural crystallization in high-magic zones"),
            BasicFact(name="Properties", value="Perpetual levitation and energy emission"),
            BasicFact(name="Rarity", value="Found only in ancient magical sanctuaries"),
        ],
    )


def _term(metadata: PageMetadata, index: int, default: str) -> str:
    terms = metadata.clickable_terms
    return terms[index] if index < len(terms) else default


def mock_page_text(title: str, metadata: PageMetadata) -> str:
    concept = metadata.related_concepts[0].term if metadata.related_concepts else "Ethereal Physics"
    return (
        f"{title} are extraordinary manifestations of {_term(metadata, 0, 'magical energy')} that defy "
        "conventional understanding of physics and matter. These remarkable formations appear as translucent, "
        "geometric structures that hover effortlessly in the air, emanating a soft, pulsating glow that shifts "
        "through the spectrum of visible light.\n\n"
        f"The {_term(metadata, 1, 'levitation field')} surrounding each crystal creates a localized distortion in "
        "gravitational forces, allowing them to maintain their suspended state indefinitely. Scholars of "
        f"{concept} have theorized that these crystals serve as conduits between the material realm and higher "
        "dimensions of existence.\n\n"
        "Ancient texts describe vast networks of these floating sentinels, positioned strategically across "
        f"{_term(metadata, 2, 'magical resonance')} points throughout the world. When activated by specific "
        f"harmonic frequencies, they can amplify and channel {_term(metadata, 3, 'astral energy')} for various "
        "mystical purposes.\n\n"
        "The formation process remains largely mysterious, though most agree it occurs only in areas of "
        "exceptional magical concentration, where the fabric of reality itself becomes more malleable and "
        "responsive to supernatural forces."
    )


def mock_section_text(section_title: str, page_title: str) -> str:
    return (
        f"The {section_title.lower()} of {page_title} has been catalogued by generations of surveyors, "
        "whose ledgers disagree on nearly every particular except the broad outline. "
        "Most accounts describe it as stable, if only because no one has yet recorded it changing."
    )
