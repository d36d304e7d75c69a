"""Tests for cosine similarity and centroid helpers."""

import numpy as np
import pytest

from app.core.vector_math import centroid, cosine_similarity


def test_identical_vectors_score_one():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_orthogonal_vectors_score_zero():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_opposite_vectors_score_minus_one():
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_scale_invariant():
    assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)


def test_zero_vector_scores_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


def test_dimension_mismatch_raises():
    with pytest.raises(ValueError, match="dimension mismatch"):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_accepts_numpy_arrays():
    assert cosine_similarity(np.array([1.0, 0.0]), [1.0, 0.0]) == pytest.approx(1.0)


def test_centroid_is_component_mean():
    result = centroid([[1.0, 0.0], [0.0, 1.0], [2.0, 2.0]])
    assert np.allclose(result, [1.0, 1.0])


def test_centroid_of_empty_set_raises():
    with pytest.raises(ValueError):
        centroid([])
