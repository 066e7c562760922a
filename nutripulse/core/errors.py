"""Error taxonomy shared by the core and the shell."""


class NutriPulseError(Exception):
    """Base class for all application errors."""


class MissingFieldsError(NutriPulseError):
    """Profile lacks the fields needed to derive targets.

    The caller should ask the user for ``fields`` rather than guess values.
    """

    def __init__(self, fields: list[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Missing profile fields: {', '.join(self.fields)}")


class InvalidTargetError(NutriPulseError):
    """A target used as a score denominator is not positive."""


class RemoteUnavailableError(NutriPulseError):
    """The remote store could not complete a request."""


class AIRequestError(NutriPulseError):
    """Content generation failed or returned data of the wrong shape."""


class PlanItemNotFoundError(NutriPulseError, LookupError):
    """No meal, workout or day matches the requested identifier."""


class DuplicateEntryError(NutriPulseError):
    """An entry with the same id is already in the log."""
