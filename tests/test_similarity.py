"""Unit tests for cosine similarity."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from services.similarity import cosine_similarity
from services.errors import DimensionMismatchError, ZeroVectorError


@pytest.mark.parametrize("vector", [
    [1.0, 2.0, 3.0],
    [-0.5, 0.25, 8.0, 1e-3],
    [1e-8, 3e-8],
])
def test_vector_is_identical_to_itself(vector):
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_similarity_is_symmetric():
    a = [0.3, -1.2, 4.0]
    b = [2.0, 0.5, -0.7]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_known_value():
    # dot = 11, |a| = sqrt(5), |b| = 5
    assert cosine_similarity([1.0, 2.0], [3.0, 4.0]) == pytest.approx(11 / (5 ** 0.5 * 5))


def test_dimension_mismatch():
    with pytest.raises(DimensionMismatchError, match="same length") as exc_info:
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
    assert exc_info.value.details == {"left": 2, "right": 3}


def test_zero_vector_fails_fast():
    with pytest.raises(ZeroVectorError):
        cosine_similarity([0.0, 0.0], [1.0, 2.0])
    with pytest.raises(ZeroVectorError):
        cosine_similarity([1.0, 2.0], [0.0, 0.0])
