"""Default fitting-engine configuration for the maihda package.

Controls which mixed-model engine :func:`~maihda.fit_maihda` uses when
no ``engine=`` argument is given.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_engine`.
    2. The ``MAIHDA_ENGINE`` environment variable.
    3. ``"statsmodels"``.

Valid engine names are ``"statsmodels"`` and ``"variational"``
(case-insensitive), plus ``"auto"`` to clear an override.

Examples:
    Use variational Bayes for all GLMM fits from the shell::

        export MAIHDA_ENGINE=variational

    Switch programmatically::

        import maihda
        maihda.set_engine("variational")

    Restore the default resolution order::

        maihda.set_engine("auto")
"""

from __future__ import annotations

import os

from .exceptions import UnsupportedEngine

_DEFAULT_ENGINE = "statsmodels"
_VALID_ENGINES = {"statsmodels", "variational", "auto"}

# Sentinel indicating "no programmatic override has been set".
_engine_override: str | None = None


def get_engine() -> str:
    """Return the active default engine name.

    Resolution order:
        1. Value set by :func:`set_engine` (unless ``"auto"``).
        2. ``MAIHDA_ENGINE`` environment variable.
        3. ``"statsmodels"``.

    Returns:
        ``"statsmodels"`` or ``"variational"``.
    """
    # 1. Programmatic override
    if _engine_override is not None and _engine_override != "auto":
        return _engine_override

    # 2. Environment variable
    env = os.environ.get("MAIHDA_ENGINE", "").strip().lower()
    if env in _VALID_ENGINES - {"auto"}:
        return env

    # 3. Default
    return _DEFAULT_ENGINE


def set_engine(name: str) -> None:
    """Override the default engine selection.

    Args:
        name: One of ``"statsmodels"``, ``"variational"``, or
            ``"auto"`` (case-insensitive).  ``"auto"`` restores the
            default resolution order.

    Raises:
        UnsupportedEngine: If *name* is not a recognised engine.
    """
    global _engine_override
    normalised = name.strip().lower()
    if normalised not in _VALID_ENGINES:
        raise UnsupportedEngine(
            f"Unknown engine '{name}'. Choose from: {sorted(_VALID_ENGINES)}"
        )
    _engine_override = normalised
