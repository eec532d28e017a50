"""
Error types raised during marshaller generation.

Every error is fatal for the running generation pass and carries the
fully-qualified name of the type that was being processed, when known.
"""


class GenerationError(Exception):
    """Base class for all generation failures."""

    def __init__(self, message: str, type_name: str | None = None):
        super().__init__(message)
        self.type_name = type_name


class ConfigurationError(GenerationError):
    """Raised when configuration or an extension registration is invalid."""

    pass


class ResolutionError(GenerationError):
    """Raised when no marshaller or mapping strategy can be found for a type."""

    pass


class RenderError(GenerationError):
    """Raised when a class model cannot be turned into source text."""

    pass
