"""Context assembly and instruction templates for grounded generation.

Context blocks are emitted in the order the results are given; ranking and
truncation of the result list are the caller's job.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models import PromptMode, SearchResult
from .model_capabilities import get_model_capabilities

DEFAULT_PROMPT_CONTEXT_CHARS = 6000
MIN_TRUNCATED_CHARS = 100
ELLIPSIS = "..."
BLOCK_SEPARATOR = "\n---\n\n"

_STRICT_TEMPLATE = """Tu es un assistant qui répond UNIQUEMENT à partir des documents ci-dessous.

Règles :
- N'utilise QUE les informations des documents fournis, jamais tes connaissances.
- Si plusieurs documents sont pertinents, combine-les en une seule réponse.
- Si les documents ne contiennent pas la réponse, réponds : "Les documents fournis ne contiennent pas cette information."
- Réponds en 3 phrases maximum.
- Ne mentionne jamais les balises [Document N].

{context}

Question : {query}

Réponse :"""

_BALANCED_TEMPLATE = """Tu es un assistant IA qui répond aux questions en s'appuyant sur les documents fournis.

Instructions :
- Base ta réponse uniquement sur le contenu des documents ci-dessous.
- Quand plusieurs documents sont pertinents, fais la synthèse de leurs informations.
- Si les documents ne permettent pas de répondre, dis-le clairement au lieu d'inventer.
- Explique brièvement ton raisonnement lorsque c'est utile, de façon claire et concise.
- Si une information est incertaine, exprime ton incertitude.
- Ne cite pas les identifiants [Document N] dans ta réponse.

{context}

Question : {query}

Réponse :"""

_RICH_TEMPLATE = """Tu es un assistant expert chargé de produire des réponses complètes et structurées à partir d'un corpus documentaire.

Méthode :
1. Lis attentivement chaque document et repère les passages qui répondent à la question.
2. Croise les documents : rapproche les informations complémentaires et signale les contradictions éventuelles.
3. Rédige une synthèse structurée (introduction courte, points clés, conclusion) fidèle aux documents.
4. N'ajoute aucune information absente des documents ; si un point n'y figure pas, indique explicitement que les documents ne le couvrent pas.
5. Si les documents ne contiennent pas du tout la réponse, dis-le clairement.
6. Rédige de manière naturelle, sans jamais faire apparaître les balises [Document N].

{context}

Question : {query}

Réponse :"""

PROMPT_TEMPLATES: dict[PromptMode, str] = {
    "strict": _STRICT_TEMPLATE,
    "balanced": _BALANCED_TEMPLATE,
    "rich": _RICH_TEMPLATE,
}


def _context_header(query: str) -> str:
    return f'Documents pertinents pour la question "{query}" :\n\n'


def _block_label(index: int, result: SearchResult) -> str:
    pertinence = round(result.similarity * 100)
    source = result.chunk.metadata.source_name
    return f"[Document {index}] Source: {source} (Pertinence: {pertinence}%)\n"


def build_rag_context(
    query: str,
    results: Sequence[SearchResult],
    fallback_max_length: int = 3000,
    model_id: str | None = None,
) -> str:
    """Assemble labeled context blocks within a character budget.

    With ``model_id`` the budget and chunk count come from the model's
    capabilities; otherwise ``fallback_max_length`` and all results are used.
    The header counts toward the budget. A block that does not fit is added
    truncated if at least 100 characters of text still fit, then assembly stops.
    """
    if not results:
        return ""

    if model_id is not None:
        caps = get_model_capabilities(model_id)
        budget = caps.max_context
        selected = list(results[: caps.max_chunks])
    else:
        budget = fallback_max_length
        selected = list(results)

    header = _context_header(query)
    if len(header) > budget:
        return ""

    parts = [header]
    used = len(header)
    for i, result in enumerate(selected, start=1):
        label = _block_label(i, result)
        text = result.chunk.content.strip()
        block_len = len(label) + len(text) + len(BLOCK_SEPARATOR)

        if used + block_len > budget:
            room = budget - used - len(label) - len(ELLIPSIS)
            if room >= MIN_TRUNCATED_CHARS:
                parts.append(label + text[:room] + ELLIPSIS)
            break

        parts.append(label + text + BLOCK_SEPARATOR)
        used += block_len

    return "".join(parts).strip()


def create_rag_prompt(
    query: str,
    results: Sequence[SearchResult],
    system_prompt: str | None = None,
    model_id: str | None = None,
) -> str:
    """Wrap the retrieved context in the instruction template for the model.

    An explicit ``system_prompt`` replaces the generated instructions; the
    context is still embedded between the instructions and the question.
    """
    context = build_rag_context(query, results, DEFAULT_PROMPT_CONTEXT_CHARS, model_id)

    if system_prompt:
        return f"{system_prompt}\n\n{context}\n\nQuestion : {query}\n\nRéponse :"

    mode = get_model_capabilities(model_id).prompt_mode
    return PROMPT_TEMPLATES[mode].format(context=context, query=query)
