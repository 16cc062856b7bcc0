"""Tests for the simulated example dataset."""

import numpy as np
import pandas as pd
import pytest

from maihda import simulate_maihda_data
from maihda.datasets import EDUCATION_LEVELS, GENDERS, RACES


@pytest.fixture(scope="module")
def data():
    return simulate_maihda_data()


class TestSimulateMaihdaData:
    def test_shape_and_columns(self, data):
        assert data.shape == (500, 6)
        assert list(data.columns) == ["id", "gender", "race", "education", "age", "health_outcome"]

    def test_ids(self, data):
        assert data["id"].tolist() == list(range(1, 501))

    def test_categories(self, data):
        assert set(data["gender"]) <= set(GENDERS)
        assert set(data["race"]) <= set(RACES)
        assert set(data["education"]) <= set(EDUCATION_LEVELS)

    def test_age_range(self, data):
        assert data["age"].dtype == np.int64
        assert data["age"].between(18, 80).all()

    def test_outcome_rounded(self, data):
        y = data["health_outcome"].to_numpy()
        np.testing.assert_allclose(y, np.round(y, 1))

    def test_reproducible(self):
        pd.testing.assert_frame_equal(simulate_maihda_data(200, 7), simulate_maihda_data(200, 7))

    def test_seed_changes_data(self):
        a = simulate_maihda_data(200, 1)
        b = simulate_maihda_data(200, 2)
        assert not a["health_outcome"].equals(b["health_outcome"])

    def test_race_proportions(self):
        big = simulate_maihda_data(20000, 0)
        share = big["race"].value_counts(normalize=True)
        assert share["White"] == pytest.approx(0.6, abs=0.02)
        assert share["Asian"] == pytest.approx(0.05, abs=0.01)

    def test_main_effects_visible(self):
        big = simulate_maihda_data(20000, 0)
        means = big.groupby("education")["health_outcome"].mean()
        assert means["Graduate"] > means["High School"]
