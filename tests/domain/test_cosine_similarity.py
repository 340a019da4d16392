import pytest

from kb_retrieval.domain.similarity import cosine_similarities, cosine_similarity


def test_identical_orthogonal_opposite():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_zero_norm_and_empty_are_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([], []) == 0.0


def test_symmetric():
    a, b = [0.3, -1.2, 4.0], [2.0, 0.5, -0.1]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_length_mismatch_is_a_programming_error():
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 2.0], [1.0])


def test_cosine_similarities_keeps_order():
    scores = cosine_similarities([1.0, 0.0], [[0.0, 1.0], [1.0, 0.0]])
    assert scores == pytest.approx([0.0, 1.0])
