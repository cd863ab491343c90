# orgmirror/models/analysis.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
import enum


class Verdict(enum.Enum):
    """Represents the review event submitted to GitHub."""

    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ReviewComment(_CamelModel):
    """A single inline comment anchored to a line of the new file."""

    path: str = Field(..., description="Path of the file the comment refers to.")
    body: str = Field(..., description="Markdown body, may embed a suggestion block.")
    position: int = Field(..., description="Line on the RIGHT side of the diff.")


class ChecklistItem(_CamelModel):
    title: str = Field(..., description="What was checked.")
    passed: bool = Field(..., description="Whether the PR satisfies the check.")
    details: Optional[str] = Field(None, description="Why the check passed or failed.")


class ReviewSection(_CamelModel):
    review_body: Optional[str] = Field(None, alias="reviewBody")
    review_comments: List[ReviewComment] = Field(
        default_factory=list, alias="reviewComments"
    )


class CodeChangeGeneration(_CamelModel):
    event: Verdict = Field(Verdict.COMMENT, description="The review verdict.")
    review_body: Optional[str] = Field(None, alias="reviewBody")
    review_comments: List[ReviewComment] = Field(
        default_factory=list, alias="reviewComments"
    )


class PullRequestAnalysis(_CamelModel):
    """Structured analysis of a pull request as returned by the LLM."""

    quality_score: Optional[int] = Field(
        None, alias="qualityScore", description="Overall quality score (0-100)."
    )
    checklist: List[ChecklistItem] = Field(default_factory=list)
    summary: Optional[str] = Field(
        None, description="Generated pull request description in Markdown."
    )
    mermaid_diagram: Optional[str] = Field(None, alias="mermaidDiagram")
    review: Optional[ReviewSection] = None
    code_change_generation: Optional[CodeChangeGeneration] = Field(
        None, alias="codeChangeGeneration"
    )

    def merged_review_comments(self) -> List[ReviewComment]:
        """Code-change comments first, then review comments at free positions."""
        code_change = (
            self.code_change_generation.review_comments
            if self.code_change_generation
            else []
        )
        reviews = self.review.review_comments if self.review else []
        taken = {(c.path, c.position) for c in code_change}
        return list(code_change) + [
            c for c in reviews if (c.path, c.position) not in taken
        ]

    def review_event(self) -> Verdict:
        if self.code_change_generation:
            return self.code_change_generation.event
        return Verdict.COMMENT

    def review_body(self) -> Optional[str]:
        if self.code_change_generation and self.code_change_generation.review_body:
            return self.code_change_generation.review_body
        if self.review:
            return self.review.review_body
        return None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
