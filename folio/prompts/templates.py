"""
Structured, versioned prompt templates for completion requests.

Prompts are immutable dataclass objects so no adapter or service carries
inline prompt strings. Each template records the sampling parameters it was
tuned with, and rendering helpers turn domain objects into template
variables.
"""

from dataclasses import dataclass, field

from folio.domain.profile import PreferenceProfile


@dataclass(frozen=True)
class PromptTemplate:
    """
    Immutable prompt template with system persona and user message.

    Attributes:
        name:          Unique identifier for logging and lookup.
        version:       Semantic version for prompt iteration tracking.
        system:        System message defining the assistant persona.
        user_template: User message template with {variable} placeholders.
        max_tokens:    Maximum output tokens requested from the model.
        temperature:   Sampling temperature the template was tuned for.
        tags:          Metadata tags for categorization.
    """

    name: str
    version: str
    system: str
    user_template: str
    max_tokens: int = 1000
    temperature: float = 0.7
    tags: tuple[str, ...] = field(default_factory=tuple)

    def render(self, **kwargs: str) -> dict[str, str]:
        """Render template with variables, returning system + user messages."""
        return {
            "system": self.system,
            "user": self.user_template.format(**kwargs),
        }

    def messages(self, **kwargs: str) -> list[dict[str, str]]:
        """Render as the two-message chat exchange the service expects."""
        rendered = self.render(**kwargs)
        return [
            {"role": "system", "content": rendered["system"]},
            {"role": "user", "content": rendered["user"]},
        ]


# ── Book Recommendation Prompt ───────────────────────────────────

RECOMMEND_BOOKS = PromptTemplate(
    name="recommend_books",
    version="1.0.0",
    system=(
        "You are a book recommendation assistant with extensive knowledge of "
        "literature. Provide thoughtful, personalized book recommendations based "
        "on user preferences. Focus on books that match the user's interests but "
        "that they might not have discovered yet."
    ),
    user_template=(
        "Recommend 10 books for a reader with the following preferences:\n\n"
        "- Favorite genres: {genres}\n"
        "- Favorite authors: {authors}\n"
        "- Interested in themes: {themes}\n"
        "- Rating style: {rating_bias} (average rating: {average_rating}/5)\n"
        "- Preferred publication era: {era}\n\n"
        "Return your response in JSON format with the following structure:\n"
        "[\n"
        "  {{\n"
        '    "title": "Book Title",\n'
        '    "author": "Author Name",\n'
        '    "genre": "Primary Genre",\n'
        '    "year": publication year (number),\n'
        '    "reason": "Brief explanation of why this book is recommended based '
        "on the user's preferences\"\n"
        "  }}\n"
        "]\n\n"
        "Make sure the books match the user's genre preferences and reading "
        "style. Include both well-known and lesser-known books that they might "
        "enjoy. Don't recommend books that are too far outside their interest "
        "areas."
    ),
    max_tokens=1000,
    temperature=0.7,
    tags=("recommendation", "personalization"),
)


# ── Connection Check Prompt ──────────────────────────────────────

CONNECTION_CHECK = PromptTemplate(
    name="connection_check",
    version="1.0.0",
    system="You are a test assistant.",
    user_template="Test connection",
    max_tokens=5,
    temperature=0.0,
    tags=("health",),
)


# ── Rendering Helpers ────────────────────────────────────────────

TOP_N = 3


def _join_or(values: list[str], default: str) -> str:
    return ", ".join(values) if values else default


def recommendation_prompt_variables(profile: PreferenceProfile) -> dict[str, str]:
    """Map a preference profile onto RECOMMEND_BOOKS placeholders."""
    pattern = profile.rating_pattern
    return {
        "genres": _join_or(profile.top_genres(TOP_N), "Various"),
        "authors": _join_or(profile.top_authors(TOP_N), "Various"),
        "themes": _join_or(profile.top_themes(TOP_N), "Various"),
        "rating_bias": pattern.rating_bias.value,
        "average_rating": f"{pattern.average_rating:.1f}",
        "era": profile.publication_era.preferred_era or "any",
    }


def render_recommendation_messages(profile: PreferenceProfile) -> list[dict[str, str]]:
    """Render the recommendation prompt as chat messages."""
    return RECOMMEND_BOOKS.messages(**recommendation_prompt_variables(profile))


# ── Prompt Registry ──────────────────────────────────────────────

PROMPT_REGISTRY: dict[str, PromptTemplate] = {
    RECOMMEND_BOOKS.name: RECOMMEND_BOOKS,
    CONNECTION_CHECK.name: CONNECTION_CHECK,
}


def get_prompt(name: str) -> PromptTemplate:
    """Retrieve a prompt template by name. Raises KeyError if not found."""
    if name not in PROMPT_REGISTRY:
        raise KeyError(
            f"Prompt '{name}' not found. Available: {list(PROMPT_REGISTRY.keys())}"
        )
    return PROMPT_REGISTRY[name]
