from datetime import UTC, datetime

import pytest

from rag_engine.domain.models import ChunkMetadata, DocumentChunk, SearchResult
from rag_engine.domain.services.prompting import build_rag_context, create_rag_prompt


def _result(i: int, content: str, similarity: float = 0.87) -> SearchResult:
    chunk = DocumentChunk(
        id=f"kb::chunk::{i}",
        content=content,
        embedding=(1.0,),
        metadata=ChunkMetadata(
            source_id="kb",
            source_name=f"doc{i}.txt",
            chunk_index=i,
            start_char=0,
            end_char=len(content),
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
        ),
    )
    return SearchResult(chunk=chunk, similarity=similarity, relevance=similarity)


def _results(n: int, length: int = 300) -> list[SearchResult]:
    return [_result(i, f"Contenu {i} " + "x" * length) for i in range(1, n + 1)]


def test_empty_results_give_empty_context():
    assert build_rag_context("q", []) == ""


def test_context_labels_blocks_in_given_order():
    results = [_result(1, "Premier texte."), _result(2, "Deuxième texte.", 0.42)]
    ctx = build_rag_context("Quelle couleur ?", results)

    assert ctx.startswith('Documents pertinents pour la question "Quelle couleur ?" :')
    assert "[Document 1] Source: doc1.txt (Pertinence: 87%)\nPremier texte." in ctx
    assert "[Document 2] Source: doc2.txt (Pertinence: 42%)\nDeuxième texte." in ctx
    assert ctx.index("[Document 1]") < ctx.index("[Document 2]")
    assert "\n---\n" in ctx


@pytest.mark.parametrize("budget", [200, 450, 700, 1000, 1500, 3000])
def test_context_never_exceeds_budget(budget):
    ctx = build_rag_context("q", _results(6), fallback_max_length=budget)
    assert len(ctx) <= budget


def test_block_that_does_not_fit_is_truncated_then_assembly_stops():
    ctx = build_rag_context("q", _results(3), fallback_max_length=600)

    assert "[Document 1]" in ctx
    assert "[Document 2]" in ctx
    assert ctx.endswith("...")
    assert "[Document 3]" not in ctx


def test_block_is_dropped_when_too_little_room_remains():
    results = _results(2)
    full_first = build_rag_context("q", results[:1], fallback_max_length=10_000)
    # Just enough for block 1; block 2 would get fewer than 100 characters
    ctx = build_rag_context("q", results, fallback_max_length=len(full_first) + 150)

    assert "[Document 2]" not in ctx
    assert not ctx.endswith("...")


def test_header_alone_over_budget_gives_empty_context():
    assert build_rag_context("une question assez longue", _results(1), fallback_max_length=10) == ""


def test_model_id_sets_chunk_count_and_budget():
    ctx = build_rag_context("q", _results(5, length=50), model_id="llama-3.2-1b")
    assert "[Document 3]" in ctx
    assert "[Document 4]" not in ctx

    ctx = build_rag_context("q", _results(10, length=500), model_id="llama-3.2-1b")
    assert len(ctx) <= 2500


def test_prompt_uses_template_of_model_prompt_mode():
    results = [_result(1, "Le ciel est bleu à cause de la diffusion Rayleigh.")]

    strict = create_rag_prompt("Pourquoi ?", results, model_id="llama-3.2-1b")
    rich = create_rag_prompt("Pourquoi ?", results, model_id="llama-3.1-8b")
    default = create_rag_prompt("Pourquoi ?", results)

    assert "3 phrases maximum" in strict
    assert "synthèse structurée" in rich
    assert "fais la synthèse" in default
    for prompt in (strict, rich, default):
        assert "diffusion Rayleigh" in prompt
        assert prompt.endswith("Question : Pourquoi ?\n\nRéponse :")


def test_explicit_system_prompt_replaces_instructions_but_keeps_context():
    results = [_result(1, "Le ciel est bleu à cause de la diffusion Rayleigh.")]
    prompt = create_rag_prompt("Pourquoi ?", results, system_prompt="Réponds en pirate.")

    assert prompt.startswith("Réponds en pirate.\n\n")
    assert "[Document 1] Source: doc1.txt" in prompt
    assert prompt.endswith("Question : Pourquoi ?\n\nRéponse :")
    assert "Instructions" not in prompt
