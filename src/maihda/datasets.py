"""Simulated example data.

:func:`simulate_maihda_data` generates a small health dataset with
intersectional structure: main effects of gender, race, education and
age, plus three interaction effects that a main-effects model cannot
capture.  It is used throughout the examples and tests.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

GENDERS = ("Male", "Female")
RACES = ("White", "Black", "Hispanic", "Asian")
RACE_PROBS = (0.6, 0.2, 0.15, 0.05)
EDUCATION_LEVELS = ("High School", "Some College", "College", "Graduate")
EDUCATION_PROBS = (0.3, 0.25, 0.3, 0.15)

_BASE_HEALTH = 70.0
_GENDER_EFFECT = {"Male": 0.0, "Female": 2.0}
_RACE_EFFECT = {"White": 5.0, "Black": -3.0, "Hispanic": -2.0, "Asian": 3.0}
_EDUCATION_EFFECT = {
    "High School": 0.0,
    "Some College": 2.0,
    "College": 5.0,
    "Graduate": 8.0,
}


def simulate_maihda_data(
    n: int = 500,
    random_state: int | np.random.Generator | None = 123,
) -> pd.DataFrame:
    """Simulate an intersectional health dataset.

    Args:
        n: Number of individuals.
        random_state: Seed or generator.

    Returns:
        DataFrame with columns ``id, gender, race, education, age,
        health_outcome``.  ``age`` is an integer in ``[18, 80]``;
        ``health_outcome`` is rounded to one decimal place.
    """
    rng = np.random.default_rng(random_state)

    gender = rng.choice(GENDERS, size=n)
    race = rng.choice(RACES, size=n, p=RACE_PROBS)
    education = rng.choice(EDUCATION_LEVELS, size=n, p=EDUCATION_PROBS)
    age = np.clip(np.round(rng.normal(45, 12, size=n)), 18, 80).astype(np.int64)

    outcome = (
        _BASE_HEALTH
        + np.array([_GENDER_EFFECT[g] for g in gender])
        + np.array([_RACE_EFFECT[r] for r in race])
        + np.array([_EDUCATION_EFFECT[e] for e in education])
        - 0.2 * (age - 45)
    )

    # Intersectional effects; later assignments win where groups overlap.
    interaction = np.zeros(n)
    interaction[(gender == "Female") & (race == "Black")] = -5.0
    interaction[(gender == "Male") & (education == "High School")] = -3.0
    interaction[(race == "Hispanic") & np.isin(education, ["College", "Graduate"])] = 4.0

    outcome = outcome + interaction + rng.normal(0, 10, size=n)

    return pd.DataFrame(
        {
            "id": np.arange(1, n + 1),
            "gender": gender.astype(object),
            "race": race.astype(object),
            "education": education.astype(object),
            "age": age,
            "health_outcome": np.round(outcome, 1),
        }
    )
