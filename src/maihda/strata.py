"""Intersectional strata construction.

A *stratum* is one combination of values across a set of categorical
identity variables (e.g. gender × race × education).  :func:`make_strata`
maps every row of a table to an integer stratum id and builds a side
table describing each stratum.

Rules
~~~~~
* A row whose stratum variables are all present is *complete*; its
  label is the variable values joined by ``sep`` in variable order.
* A label is *valid* when at least ``min_count`` complete rows share
  it.  Valid labels are sorted lexicographically and numbered
  ``1..K`` in that order, so ids never depend on row order.
* Incomplete rows, and rows whose label is not valid, get a null
  stratum.  There is no partial or "missing" stratum.

Labels are split back into their component values for the metadata
table.  When a value itself contains the separator that split is
ambiguous, so the component values are taken from the rows directly,
an :class:`~maihda.exceptions.AmbiguousLabelWarning` is emitted, and
two different combinations that collapse onto one label raise
:class:`~maihda.exceptions.InvalidArgument`.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence

import numpy as np
import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._results import StrataResult
from .exceptions import AmbiguousLabelWarning, InvalidArgument

logger = logging.getLogger(__name__)


def _value_strings(col: pd.Series) -> pd.Series:
    """Return the label text for every value of *col* (missing stays missing).

    Float columns holding only whole numbers (typically integer codes
    that became float because of a missing value) are rendered without
    a trailing ``.0`` so that ``1`` and ``1.0`` produce the same label.
    """
    present = col.dropna()
    if (
        pd.api.types.is_float_dtype(col.dtype)
        and len(present) > 0
        and bool(np.all(np.isfinite(present)))
        and bool(np.all(np.mod(present, 1) == 0))
    ):
        text = present.astype("int64").astype(str)
    else:
        text = present.astype(str)
    return text.reindex(col.index)


def _validate_vars(df: pd.DataFrame, vars: str | Sequence[str]) -> list[str]:
    if isinstance(vars, str):
        vars = [vars]
    try:
        names = list(vars)
    except TypeError:
        raise InvalidArgument(
            "'vars' must be a list with at least one variable name, "
            f"got {type(vars).__name__}."
        ) from None
    if len(names) == 0 or not all(isinstance(v, str) for v in names):
        raise InvalidArgument(
            "'vars' must be a list with at least one variable name, got "
            f"{names!r}."
        )
    missing = [v for v in names if v not in df.columns]
    if missing:
        raise InvalidArgument(f"Variables not found in data: {', '.join(missing)}")
    return names


def make_strata(
    data: DataFrameLike,
    vars: str | Sequence[str],
    sep: str = "_",
    min_count: int = 1,
) -> StrataResult:
    """Assign every row to an intersectional stratum.

    Args:
        data: Observation table.  Never modified; a copy is returned.
        vars: Stratum variables, in the order their values appear in
            labels.  A single name is accepted.
        sep: Separator placed between values in a label.
        min_count: Minimum number of complete rows a combination needs
            to become a stratum.  Smaller combinations get a null
            stratum.

    Returns:
        A :class:`~maihda.StrataResult` whose ``data`` is a copy of the
        input with a nullable-integer ``stratum`` column and whose
        ``strata_info`` has columns ``stratum, label, n, <vars...>``.

    Raises:
        InvalidArgument: If *data* is not a non-empty DataFrame, *vars*
            is empty or names missing columns, *sep* is empty, or
            *min_count* is not an integer ≥ 1.
    """
    df = _ensure_pandas_df(data, name="data")
    if len(df) == 0:
        raise InvalidArgument("'data' must contain at least one row.")
    names = _validate_vars(df, vars)
    if not isinstance(sep, str) or sep == "":
        raise InvalidArgument(f"'sep' must be a non-empty string, got {sep!r}.")
    if (
        isinstance(min_count, bool)
        or not isinstance(min_count, (int, np.integer))
        or min_count < 1
    ):
        raise InvalidArgument(f"'min_count' must be an integer >= 1, got {min_count!r}.")

    parts = [_value_strings(df[v]) for v in names]
    complete = np.logical_and.reduce([p.notna().to_numpy() for p in parts])

    # Join component strings for complete rows only.
    texts = [p[complete] for p in parts]
    labels = texts[0]
    for t in texts[1:]:
        labels = labels + sep + t

    # Component values per label, taken from the first row that carries it.
    keyed = pd.DataFrame(
        {j: t.to_numpy(dtype=object) for j, t in enumerate(texts)},
        index=labels.index,
    )
    keyed["label"] = labels.to_numpy(dtype=object)

    ambiguous = [v for v, t in zip(names, texts) if t.str.contains(sep, regex=False).any()]
    if ambiguous:
        warnings.warn(
            f"Values of {', '.join(ambiguous)} contain the separator {sep!r}; "
            "stratum labels cannot be split back into their components.",
            AmbiguousLabelWarning,
            stacklevel=2,
        )
        combos = keyed.drop_duplicates()
        clashes = combos["label"][combos["label"].duplicated()].unique()
        if len(clashes) > 0:
            raise InvalidArgument(
                "Different value combinations produce the same stratum label "
                f"with separator {sep!r}: {', '.join(map(str, clashes))}. "
                "Choose a separator that does not occur in the values."
            )

    counts = labels.value_counts()
    valid = sorted(str(lab) for lab, c in counts.items() if c >= min_count)
    ids = {lab: i + 1 for i, lab in enumerate(valid)}

    stratum = pd.Series(pd.NA, index=df.index, dtype="Int64")
    if valid:
        stratum[complete] = labels.map(ids).astype("Int64").to_numpy()

    result_data = df.copy()
    result_data["stratum"] = stratum

    first = keyed.drop_duplicates("label").set_index("label")
    strata_info = pd.DataFrame(
        {
            "stratum": np.arange(1, len(valid) + 1, dtype=np.int64),
            "label": pd.Series(valid, dtype=object),
            "n": np.array([counts[lab] for lab in valid], dtype=np.int64),
        }
    )
    for j, v in enumerate(names):
        strata_info[v] = first.loc[valid, j].to_numpy(dtype=object) if valid else []

    logger.debug(
        "make_strata: %d strata from %d of %d rows (%d incomplete, min_count=%d)",
        len(valid),
        int(stratum.notna().sum()),
        len(df),
        int((~complete).sum()),
        min_count,
    )

    return StrataResult(
        data=result_data,
        strata_info=strata_info,
        vars=tuple(names),
        sep=sep,
        min_count=int(min_count),
    )
