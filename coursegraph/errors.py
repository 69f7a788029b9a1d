"""Exception taxonomy for coursegraph.

Structural content problems (missing nodes, unknown tags, bad attributes) are
normally reported as inline error results by the resolution engine; the
exception classes for them exist so strict callers (``ContentGraphStore.get``,
graph validation) can raise the same vocabulary. Programmer-facing contract
violations are always raised.
"""


class CoursegraphError(Exception):
    """Base class for every error raised by coursegraph."""


# =============================================================================
# Identifier errors
# =============================================================================


class MalformedReferenceError(CoursegraphError, ValueError):
    """A reference string is empty or contains reserved characters."""

    def __init__(self, message: str, reference: str | None = None):
        super().__init__(message)
        self.reference = reference


class UnsupportedReferenceError(CoursegraphError):
    """A reference uses reserved syntax that has no semantics yet (``../foo``)."""

    def __init__(self, message: str, reference: str | None = None):
        super().__init__(message)
        self.reference = reference


# =============================================================================
# Graph / resolution errors
# =============================================================================


class NotFoundInGraphError(CoursegraphError, KeyError):
    """No static node is stored under the requested key."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No node with id {self.key!r} in the content graph"


class UnknownTagError(CoursegraphError):
    """A node's tag has no registered component."""

    def __init__(self, tag: str, key: str | None = None):
        location = f" (node {key!r})" if key else ""
        super().__init__(f"Unknown tag {tag!r}{location}")
        self.tag = tag
        self.key = key


class AttributeValidationError(CoursegraphError):
    """A node's attributes do not satisfy its component's schema."""

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class ReferenceCycleError(CoursegraphError):
    """A node refers back to one of its own ancestors."""

    def __init__(self, path: list[str]):
        super().__init__("Reference cycle: " + " -> ".join(path))
        self.path = path


class HandlerError(CoursegraphError):
    """A component handler raised during setup.

    The original exception is kept on ``original`` (and as ``__cause__``) so
    it can be shown to a content author without a stack trace.
    """

    def __init__(self, tag: str, key: str | None, original: BaseException):
        where = f"{tag} ({key})" if key else tag
        super().__init__(f"{where} failed: {type(original).__name__}: {original}")
        self.tag = tag
        self.key = key
        self.original = original


class HandleStateError(CoursegraphError):
    """Invalid operation for the handle's current state."""


class HandlePendingError(HandleStateError):
    """A result was requested from a handle that has not settled."""


# =============================================================================
# Expression errors
# =============================================================================


class ExpressionSyntaxError(CoursegraphError):
    """Malformed expression source.

    Attributes:
        source: The full expression text
        offset: Zero-based character offset of the problem
    """

    def __init__(self, message: str, source: str = "", offset: int = 0):
        super().__init__(message)
        self.message = message
        self.source = source
        self.offset = offset

    def __str__(self) -> str:
        text = f"{self.message} at offset {self.offset}"
        if self.source and "\n" not in self.source:
            text += f"\n  {self.source}\n  {' ' * self.offset}^"
        return text


class ExpressionEvaluationError(CoursegraphError):
    """An expression failed while being evaluated."""


class UnknownFunctionError(ExpressionEvaluationError):
    """A call names a function that is not registered."""

    def __init__(self, name: str, available: list[str] | None = None):
        message = f"Unknown function {name!r}"
        if available:
            message += f". Available functions: {', '.join(sorted(available))}"
        super().__init__(message)
        self.name = name
