"""
Tests for similarity primitives (cosine similarity, centroid).
"""

import numpy as np
import pytest

from digest_core.exceptions import DimensionMismatchError, EmptyInputError, ValidationError
from digest_core.similarity import centroid, cosine_similarity, stack_vectors


# ============================================================================
# cosine_similarity
# ============================================================================


def test_cosine_identical_vectors():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_cosine_orthogonal_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_cosine_opposite_vectors():
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_cosine_is_scale_invariant():
    a = np.array([0.3, -0.2, 0.9])
    assert cosine_similarity(a, 10 * a) == pytest.approx(1.0)


def test_cosine_zero_norm_returns_zero():
    """A zero vector is a degenerate case, not an error."""
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(DimensionMismatchError, match="expected 2, got 3"):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_dimension_mismatch_is_value_error():
    """Callers catching ValueError or the typed hierarchy both work."""
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 2.0])
    with pytest.raises(ValidationError):
        cosine_similarity([1.0], [1.0, 2.0])


# ============================================================================
# centroid
# ============================================================================


def test_centroid_elementwise_mean():
    result = centroid([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    np.testing.assert_allclose(result, [3.0, 4.0])


def test_centroid_single_vector():
    np.testing.assert_allclose(centroid([[0.5, -0.5, 2.0]]), [0.5, -0.5, 2.0])


def test_centroid_empty_raises():
    with pytest.raises(EmptyInputError):
        centroid([])


def test_centroid_dimension_mismatch_reports_index():
    with pytest.raises(DimensionMismatchError) as exc_info:
        centroid([[1.0, 2.0], [1.0, 2.0], [1.0, 2.0, 3.0]])

    assert exc_info.value.index == 2
    assert exc_info.value.expected == 2
    assert exc_info.value.actual == 3


def test_stack_vectors_shape():
    matrix = stack_vectors([np.zeros(3), [1, 2, 3]])
    assert matrix.shape == (2, 3)
    assert matrix.dtype == np.float64
