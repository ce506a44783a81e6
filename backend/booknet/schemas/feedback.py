"""
BookNet Backend — Feedback Request/Response Schemas
====================================================
"""

from pydantic import BaseModel, Field, field_validator


class FeedbackRequest(BaseModel):
    book_id: int = Field(description="Book the feedback is about")
    note: float = Field(ge=0, le=5, description="Rating between 0 and 5")
    comment: str = Field(min_length=1, max_length=2000)

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class FeedbackResponse(BaseModel):
    """own_feedback is True when the requester wrote this feedback."""
    note: float
    comment: str
    own_feedback: bool
