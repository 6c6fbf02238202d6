"""
Tests for per-site rescaling.
"""

import numpy as np
import pytest

from difgrid.grid.normalize import normalize_log_likelihoods


class TestNormalize:

    def test_column_maximum_is_one(self):
        raw = np.random.default_rng(0).normal(-50.0, 10.0, size=(20, 7))
        normalized = normalize_log_likelihoods(raw)

        assert normalized.shape == raw.shape
        np.testing.assert_array_equal(normalized.max(axis=0), 1.0)
        assert np.all(normalized > 0)
        assert np.all(normalized <= 1.0)

    def test_values(self):
        raw = np.array([[-1.0, -10.0], [-3.0, -9.0]])
        normalized = normalize_log_likelihoods(raw)
        np.testing.assert_allclose(normalized, [[1.0, np.exp(-1.0)], [np.exp(-2.0), 1.0]])

    def test_very_small_likelihoods(self):
        """Columns far below exp underflow are rescaled, not zeroed."""
        raw = np.array([[-2000.0], [-2001.0]])
        normalized = normalize_log_likelihoods(raw)
        np.testing.assert_allclose(normalized[:, 0], [1.0, np.exp(-1.0)])

    def test_input_untouched(self):
        raw = np.array([[-1.0], [-2.0]])
        normalize_log_likelihoods(raw)
        np.testing.assert_array_equal(raw, [[-1.0], [-2.0]])

    def test_non_finite_column(self):
        raw = np.array([[-1.0, -np.inf], [-2.0, -np.inf]])
        with pytest.raises(ValueError, match=r"\[1\]"):
            normalize_log_likelihoods(raw)

    def test_requires_matrix(self):
        with pytest.raises(ValueError, match="2D"):
            normalize_log_likelihoods(np.zeros(3))
