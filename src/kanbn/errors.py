"""Exception hierarchy for kanbn boards."""


class KanbnError(Exception):
    """Base class for every error raised by kanbn."""


class StructuralParseError(KanbnError, ValueError):
    """A document is missing required structure or a section is malformed."""


class EmptyInputError(StructuralParseError):
    """Input was None."""


class EmptyDocumentError(StructuralParseError):
    """Input contained nothing but whitespace."""


class MissingNameHeading(StructuralParseError):
    """A document has no leading heading to take its name from."""


class SchemaValidationError(KanbnError, ValueError):
    """A mapping or list failed its declared shape.

    `errors` holds one "<path> <message>" entry per offending property.
    """

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("\n".join(self.errors))


class SemanticDateError(SchemaValidationError):
    """A string that should hold a date could not be parsed."""


class SemanticNumberError(SchemaValidationError):
    """A value that should be numeric could not be parsed."""


class InvalidFilterError(KanbnError, ValueError):
    """A filter or sorter regular expression does not compile."""


class NotInitializedError(KanbnError):
    """The board does not exist on disk yet."""

    def __init__(self, message: str = "Not initialised in this folder") -> None:
        super().__init__(message)


class NotFoundError(KanbnError, LookupError):
    """A referenced task, sprint or view does not exist."""


class ConflictError(KanbnError):
    """A task id is already taken."""


class DomainRuleError(KanbnError, ValueError):
    """An operation would break a board rule."""


def wrap(prefix: str, error: KanbnError) -> KanbnError:
    """Return a copy of error with prefix prepended, keeping its class."""
    if isinstance(error, SchemaValidationError):
        wrapped = type(error)([f"{prefix}: {error.errors[0]}" if error.errors else prefix, *error.errors[1:]])
    else:
        wrapped = type(error)(f"{prefix}: {error}")
    return wrapped
