import pytest

from kb_retrieval.application.dto.query_dto import RAGAnswer
from kb_retrieval.domain.models import Citation, CitationMetrics, CitationValidation, DroppedCitation
from kb_retrieval.domain.services.citations import citation_metrics


def cite(n: int) -> Citation:
    return Citation(text=f"quote {n}", document_path=f"docs/{n}.md", document_title=f"Doc {n}", chunk_id=f"d{n}-chunk-0")


def drop(n: int) -> DroppedCitation:
    return DroppedCitation(text=f"made up {n}", document_path=None, reason="quote not found in served context")


def test_empty_batch_gives_zero_metrics():
    assert citation_metrics([]) == CitationMetrics(
        total_questions=0,
        questions_with_citations=0,
        average_citations_per_answer=0.0,
        valid_citations_percentage=0.0,
        answers_without_hallucinations=0,
    )


def test_metrics_over_mixed_answers():
    validations = [
        CitationValidation(valid=[cite(1), cite(2)]),            # grounded
        CitationValidation(valid=[cite(3)], dropped=[drop(1)]),  # one invented
        CitationValidation(valid=[cite(4)]),                     # too few to count as grounded
        CitationValidation(),                                    # no citations at all
    ]

    m = citation_metrics(validations)

    assert m.total_questions == 4
    assert m.questions_with_citations == 3
    assert m.average_citations_per_answer == pytest.approx(5 / 4)
    assert m.valid_citations_percentage == pytest.approx(80.0)
    assert m.answers_without_hallucinations == 1


def test_answers_without_citations_have_zero_valid_percentage():
    m = citation_metrics([CitationValidation(), CitationValidation()])

    assert m.total_questions == 2
    assert m.questions_with_citations == 0
    assert m.valid_citations_percentage == 0.0
    assert m.answers_without_hallucinations == 0


def test_only_dropped_citations_are_not_grounded():
    m = citation_metrics([CitationValidation(dropped=[drop(1), drop(2)])])

    assert m.questions_with_citations == 1
    assert m.valid_citations_percentage == 0.0
    assert m.answers_without_hallucinations == 0


def test_metrics_from_rag_answers():
    answers = [
        RAGAnswer(question="q1", answer="a1", citations=[cite(1), cite(2), cite(3)]),
        RAGAnswer(question="q2", answer="a2", citations=[cite(1)], dropped_citations=[drop(1)]),
    ]

    m = citation_metrics(a.citation_validation for a in answers)

    assert m.total_questions == 2
    assert m.questions_with_citations == 2
    assert m.average_citations_per_answer == pytest.approx(2.5)
    assert m.valid_citations_percentage == pytest.approx(80.0)
    assert m.answers_without_hallucinations == 1
