"""Exceptions raised by planet generation."""


class PlanetGenerationError(Exception):
    """Base class for all generation failures."""


class ConfigurationError(PlanetGenerationError, ValueError):
    """Invalid input configuration, detected before generation starts."""


class InvariantViolation(PlanetGenerationError, RuntimeError):
    """Internal geometry defect; generation is aborted instead of emitting corrupt tiles."""


class MissingCollaboratorError(PlanetGenerationError):
    """A required collaborator (e.g. the presentation adapter) was not provided."""
