"""World facts accumulated by the client while exploring a world."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

WORLDBUILDING_CATEGORIES: dict[str, tuple[str, ...]] = {
    "mental": ("Culture", "Identity", "Beliefs", "Ideologies", "Language", "Networks", "Behavior", "Memes"),
    "material": ("Physics", "Chemistry", "Biology", "Landscapes & Terrains", "Climate"),
    "social": (
        "Social Structure",
        "Politics",
        "Work",
        "Technology",
        "Architecture",
        "Ethics",
        "Transportation",
        "Zoology",
    ),
}

ALL_CATEGORIES: tuple[str, ...] = tuple(name for group in WORLDBUILDING_CATEGORIES.values() for name in group)

SUMMARY_MAX_LENGTH = 500
RECENT_FACTS_PER_CATEGORY = 3


def _check_vocabulary(group: str, facts: dict[str, list[str]]) -> dict[str, list[str]]:
    allowed = WORLDBUILDING_CATEGORIES[group]
    unknown = [name for name in facts if name not in allowed]
    if unknown:
        raise ValueError(f"Unknown {group} categories: {', '.join(unknown)}")
    return facts


class WorldFacts(BaseModel):
    """Facts grouped as mental, material and social, each keyed by category."""

    model_config = ConfigDict(extra="forbid")

    mental: dict[str, list[str]] = Field(default_factory=dict)
    material: dict[str, list[str]] = Field(default_factory=dict)
    social: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("mental")
    @classmethod
    def check_mental(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return _check_vocabulary("mental", value)

    @field_validator("material")
    @classmethod
    def check_material(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return _check_vocabulary("material", value)

    @field_validator("social")
    @classmethod
    def check_social(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        return _check_vocabulary("social", value)

    def is_empty(self) -> bool:
        return not any(facts for group in (self.mental, self.material, self.social) for facts in group.values())

    def summary(self, max_length: int = SUMMARY_MAX_LENGTH) -> str:
        """Compact prompt context: the latest few facts of every non-empty category."""
        parts = []
        for group in (self.mental, self.material, self.social):
            for category, facts in group.items():
                if facts:
                    parts.append(f"{category}: {', '.join(facts[-RECENT_FACTS_PER_CATEGORY:])}")

        text = ". ".join(parts)
        if len(text) > max_length:
            return text[:max_length] + "..."
        return text
