"""Exception and warning classes raised by the maihda package.

Errors subclass the built-in exception a caller would naturally catch
(``ValueError`` for bad input, ``RuntimeError`` for failures that only
surface after fitting work has started) as well as :class:`MaihdaError`,
so both ``except ValueError`` and ``except MaihdaError`` work.

Warnings are plain :mod:`warnings` categories; they are emitted with
``warnings.warn`` and never interrupt a computation.
"""

from __future__ import annotations


class MaihdaError(Exception):
    """Base class for all errors raised by maihda."""


class InvalidArgument(MaihdaError, ValueError):
    """Malformed or missing required input."""


class UnsupportedFamily(InvalidArgument):
    """Distributional family name not recognised (or not supported by an engine)."""


class UnsupportedEngine(InvalidArgument):
    """Fitting engine name not recognised."""


class EngineMismatch(InvalidArgument):
    """Models being compared were fitted with different engines."""


class ExtractionError(MaihdaError, RuntimeError):
    """A fitted model exposes no recognisable variance structure."""


class InvalidVariance(MaihdaError, ValueError):
    """An extracted variance component is not a finite number."""


class NonPositiveVariance(InvalidVariance):
    """The reference model's between-stratum variance is zero or negative."""


class BootstrapFailed(MaihdaError, RuntimeError):
    """Every bootstrap replicate failed; no interval can be computed."""


# ------------------------------------------------------------------ #
# Warnings
# ------------------------------------------------------------------ #


class MaihdaWarning(UserWarning):
    """Base class for all warnings emitted by maihda."""


class BootstrapUnreliable(MaihdaWarning):
    """Fewer than half of the bootstrap replicates fitted successfully."""


class SizeMismatch(MaihdaWarning):
    """Two models being compared were fitted on differently sized data."""


class AmbiguousLabelWarning(MaihdaWarning):
    """A stratum-variable value contains the label separator."""


__all__ = [
    "AmbiguousLabelWarning",
    "BootstrapFailed",
    "BootstrapUnreliable",
    "EngineMismatch",
    "ExtractionError",
    "InvalidArgument",
    "InvalidVariance",
    "MaihdaError",
    "MaihdaWarning",
    "NonPositiveVariance",
    "SizeMismatch",
    "UnsupportedEngine",
    "UnsupportedFamily",
]
