"""Attribute schemas shared by components.

Components declare a pydantic model as their ``attribute_schema``; the
engine validates each node's (post-override) attributes against it. Schemas
are strict: unknown attributes are errors, so typos surface to authors
instead of being silently ignored.

Authored attribute names are camelCase (``maxAttempts``); fields use
snake_case with aliases.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..ids import VALID_ID_SEGMENT


class BaseAttributes(BaseModel):
    """Attributes every component accepts."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str | None = Field(default=None, description="Unique identifier")
    title: str | None = Field(
        default=None, description="Display title (tabs, navigation, headers)"
    )
    class_: str | None = Field(
        default=None, alias="class", description="Visual styling classes"
    )
    launchable: str | None = Field(
        default=None, description='Set to "true" to show in activity indexes'
    )
    initial_position: float | None = Field(
        default=None,
        alias="initialPosition",
        description="Initial position for sortable items (1-indexed)",
    )
    lang: str | None = Field(default=None, description="BCP 47 language tag")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str | None) -> str | None:
        if v and not VALID_ID_SEGMENT.match(v):
            raise ValueError(
                f"ID {v!r} is invalid. IDs may only contain letters, digits, '_' and '-'"
            )
        return v


class InputAttributes(BaseAttributes):
    """Attributes for input components (text boxes, choices...)."""

    slot: str | None = Field(
        default=None, description='Named slot for multi-input graders (e.g. "numerator")'
    )
    placeholder: str | None = Field(
        default=None, description="Placeholder text displayed when empty"
    )


class GraderAttributes(BaseAttributes):
    """Attributes for grader components."""

    answer: str | None = Field(default=None, description="Expected answer for grading")
    display_answer: str | None = Field(
        default=None,
        alias="displayAnswer",
        description="Answer shown to the learner (may differ from the graded answer)",
    )
    target: str | None = Field(
        default=None, description="ID of the input to grade (inferred if omitted)"
    )


ShowAnswerMode = Literal["always", "never", "attempted", "answered", "closed", "finished"]


class ProblemAttributes(BaseAttributes):
    """Attributes for problem containers (attempts and answer visibility)."""

    max_attempts: str | None = Field(
        default=None,
        alias="maxAttempts",
        pattern=r"^(\d+)?$",
        description="Maximum submission attempts (empty = unlimited)",
    )
    showanswer: ShowAnswerMode | None = Field(
        default=None, description="When the Show Answer button becomes available"
    )
