"""
Exceptions raised by the cavity simulation.

Configuration problems are fatal for the run that triggers them and are
raised before any integration begins. Step rejections of the adaptive
integrator are handled internally; only an unrecoverable step surfaces
as IntegrationError.
"""


class CavityError(Exception):
    """Base class for all simulation errors."""


class ConfigurationError(CavityError, ValueError):
    """Malformed entity graph or declarative description."""


class ReferenceNotFoundError(ConfigurationError):
    """
    A declaration refers to an entity name that was never created.

    Attributes:
        name: The unresolved identifier
        kind: Which declaration field held it, e.g. "coupling 'to'"
    """

    def __init__(self, name: str, kind: str):
        self.name = name
        self.kind = kind
        super().__init__(f"{kind[0].upper()}{kind[1:]} not found: {name}")


class ExpressionError(ConfigurationError):
    """A parameter value could not be parsed as a number or distribution."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Cannot parse expression: {text}")


class EntityIndexError(ConfigurationError, IndexError):
    """An entity index lies outside the arena it refers to."""


class IntegrationError(CavityError, RuntimeError):
    """The adaptive stepper could not find an acceptable step."""
