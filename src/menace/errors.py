"""Exception types raised by the MENACE engine.

Board and symmetry errors are precondition violations and propagate to the
caller. Only `DeserializationError` is recoverable: the policy store keeps its
previous contents when an import fails.
"""


class MenaceError(Exception):
    """Base class for all engine errors."""


class IllegalMoveError(MenaceError, ValueError):
    """A move targets an occupied or out-of-range cell."""


class NoLegalMoveError(MenaceError, RuntimeError):
    """A decision was requested on a terminal or full board."""


class InvalidMappingError(MenaceError, RuntimeError):
    """A canonical index could not be mapped back to the actual board."""


class DeserializationError(MenaceError, ValueError):
    """An exported memory blob is malformed."""


class ConfigError(MenaceError, ValueError):
    """Bead schedule or reward settings are invalid."""
