"""Mixed-model formula parsing.

Model formulas use the familiar lme4 notation, with exactly one
random-intercept term::

    health_outcome ~ age + gender + (1 | stratum)

:func:`parse_formula` splits such a formula into the pieces the
engines need: a patsy formula for the fixed part
(``health_outcome ~ age + gender``) and the name of the grouping
field (``stratum``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .exceptions import InvalidArgument

# Any parenthesised "lhs | group" (or "lhs || group") term.
_RANDOM_TERM = re.compile(r"\(([^()|]*)\|\|?([^()|]*)\)")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


@dataclass(frozen=True)
class MaihdaFormula:
    """A parsed random-intercept formula."""

    response: str
    """Left-hand side, as written."""

    fixed: str
    """Patsy formula for the fixed part, e.g. ``"y ~ age + gender"``."""

    group: str
    """Name of the random-intercept grouping field."""

    text: str
    """The formula as supplied by the user."""

    @property
    def rhs(self) -> str:
        """Right-hand side of the fixed part."""
        return self.fixed.split("~", 1)[1].strip()

    @property
    def intercept_only(self) -> bool:
        """True when the fixed part has no predictors."""
        return self.rhs == "1"

    def __str__(self) -> str:
        return self.text


def _cleanup_rhs(rhs: str) -> str:
    """Tidy additive operators left behind after removing the random term.

    Returns ``"1"`` when nothing is left so the fixed part is always a
    valid intercept-only formula.
    """
    s = re.sub(r"\s*\+\s*", " + ", rhs)
    s = re.sub(r"(?:\s*\+\s*){2,}", " + ", s)
    s = s.strip()
    s = re.sub(r"^\+\s*", "", s)
    s = re.sub(r"\s*\+$", "", s)
    return s if s else "1"


def parse_formula(formula: str | MaihdaFormula) -> MaihdaFormula:
    """Parse an lme4-style random-intercept formula.

    Args:
        formula: A formula such as ``"y ~ x + (1 | stratum)"``.  An
            already parsed :class:`MaihdaFormula` is returned as-is.

    Returns:
        The parsed :class:`MaihdaFormula`.

    Raises:
        InvalidArgument: If *formula* is not a string, has no ``~``,
            has no random-intercept term, has more than one grouping
            term, or uses random slopes.
    """
    if isinstance(formula, MaihdaFormula):
        return formula
    if not isinstance(formula, str):
        msg = f"'formula' must be a string, got {type(formula).__name__}."
        raise InvalidArgument(msg)

    text = " ".join(formula.split())
    if text.count("~") != 1:
        msg = f"Formula must contain exactly one '~': {formula!r}."
        raise InvalidArgument(msg)
    lhs, rhs = (part.strip() for part in text.split("~", 1))
    if not lhs:
        msg = f"Formula has no response variable: {formula!r}."
        raise InvalidArgument(msg)

    terms = _RANDOM_TERM.findall(rhs)
    if not terms:
        msg = (
            "Formula must contain a random-intercept term such as "
            f"'(1 | stratum)': {formula!r}."
        )
        raise InvalidArgument(msg)
    if len(terms) > 1:
        msg = (
            "Only one grouping term is supported; found "
            f"{len(terms)} in {formula!r}."
        )
        raise InvalidArgument(msg)

    slope, group = (t.strip() for t in terms[0])
    if slope != "1":
        msg = (
            "Only random intercepts '(1 | group)' are supported; got "
            f"'({slope} | {group})'."
        )
        raise InvalidArgument(msg)
    if not _IDENTIFIER.match(group):
        msg = f"Grouping term must name a single column, got {group!r}."
        raise InvalidArgument(msg)

    fixed_rhs = _cleanup_rhs(_RANDOM_TERM.sub("", rhs))
    if "|" in fixed_rhs:
        msg = f"Unbalanced random-effect term in {formula!r}."
        raise InvalidArgument(msg)

    return MaihdaFormula(
        response=lhs,
        fixed=f"{lhs} ~ {fixed_rhs}",
        group=group,
        text=formula,
    )
