"""Validation issue models shared by graph checks and the CLI."""

from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """How serious a validation issue is."""

    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """A single problem found while validating content."""

    severity: Severity
    category: str = Field(description="Machine-readable issue category")
    location: str = Field(description="Node key or path where the issue was found")
    message: str
    suggestion: str | None = None


class ValidationResult(BaseModel):
    """Outcome of a validation pass."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(
        self,
        category: str,
        location: str,
        message: str,
        suggestion: str | None = None,
    ) -> None:
        self.issues.append(
            ValidationIssue(
                severity=Severity.ERROR,
                category=category,
                location=location,
                message=message,
                suggestion=suggestion,
            )
        )

    def add_warning(
        self,
        category: str,
        location: str,
        message: str,
        suggestion: str | None = None,
    ) -> None:
        self.issues.append(
            ValidationIssue(
                severity=Severity.WARNING,
                category=category,
                location=location,
                message=message,
                suggestion=suggestion,
            )
        )
