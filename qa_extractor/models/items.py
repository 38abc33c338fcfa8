"""Extracted question items and their classification taxonomy."""

from pydantic import BaseModel, ConfigDict, Field

TAXONOMY_FIELDS = (
    "question_type",
    "question_concept",
    "difficulty",
    "topic",
    "sub_topic",
    "relevancy_score",
    "curriculum_coverage",
)


class Taxonomy(BaseModel):
    """Classification fields; None means the model did not supply a value."""

    model_config = ConfigDict(frozen=True)

    question_type: str | None = None
    question_concept: str | None = None
    difficulty: str | None = None
    topic: str | None = None
    sub_topic: str | None = None
    relevancy_score: str | None = None
    curriculum_coverage: str | None = None


class ExtractedItem(BaseModel):
    """A question (and optional answer) extracted from source text."""

    model_config = ConfigDict(frozen=True)

    question_text: str = Field(..., description="Question as extracted")
    answer_text: str | None = Field(None, description="Candidate answer, interview only")
    category: str | None = Field(None, description="Coarse stack hint from extraction")
    taxonomy: Taxonomy = Field(default_factory=Taxonomy)

    @property
    def key(self) -> str:
        """Trimmed question text, compared exactly for dedupe and matching."""
        return self.question_text.strip()

    def prompt_payload(self) -> dict[str, str]:
        """Fields sent to the classifier for this item."""
        payload = {"question_text": self.question_text}
        if self.answer_text is not None:
            payload["answer_text"] = self.answer_text
        return payload
