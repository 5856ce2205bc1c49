"""Command line front end for the knowledge-base pipeline.

Subcommands:
- ingest: build a knowledge base from plain-text files
- list / stats / delete: knowledge-base management
- search: semantic search inside one knowledge base
- ask: answer a question, grounded in a knowledge base when one is given

The default ``KNOWLEDGE_BACKEND=memory`` forgets everything when the process
exits; use ``KNOWLEDGE_BACKEND=chroma`` for knowledge bases that persist
between invocations.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from rag_engine.application.dto.ingest_dto import RawDocument
from rag_engine.application.dto.query_dto import AnswerRequest
from rag_engine.config.composition import RAGServices, build_services, resolve_embedding_model
from rag_engine.config.logging_setup import configure_logging
from rag_engine.config.settings import AppSettings
from rag_engine.domain.errors import DomainError
from rag_engine.domain.services.query_analysis import get_adaptive_rag_config


async def _load_embeddings(services: RAGServices) -> None:
    await services.embeddings.load_model(resolve_embedding_model(services.settings))


def _read_documents(paths: list[str]) -> list[RawDocument]:
    docs = []
    for raw in paths:
        path = Path(raw)
        docs.append(RawDocument(name=path.name, content=path.read_text(encoding="utf-8")))
    return docs


async def cmd_ingest(services: RAGServices, args) -> int:
    documents = _read_documents(args.paths)
    for doc in documents:
        services.processor.validate_document(doc.content)
        print(f"{doc.name}: ~{services.processor.estimate_chunks(doc.content)} chunks")

    await _load_embeddings(services)

    def progress(pct: float, stage: str, detail: str | None) -> None:
        suffix = f" ({detail})" if detail else ""
        print(f"  [{pct:5.1f}%] {stage}{suffix}", file=sys.stderr)

    kb = await services.processor.create_knowledge_base(
        args.name, args.description, documents, on_progress=progress if args.verbose else None
    )
    print(f"Knowledge base created: {kb.id} ({kb.total_documents} docs, {kb.total_chunks} chunks)")
    return 0


async def cmd_list(services: RAGServices, args) -> int:
    kbs = await services.processor.list_knowledge_bases()
    if not kbs:
        print("No knowledge bases.")
        return 0
    for kb in kbs:
        print(
            f"{kb.id}  {kb.name}  docs={kb.total_documents} chunks={kb.total_chunks} "
            f"size={kb.size_bytes}B  created={kb.created_at:%Y-%m-%d %H:%M}"
        )
    return 0


async def cmd_stats(services: RAGServices, args) -> int:
    stats = await services.processor.storage_stats()
    print(f"Knowledge bases: {stats.knowledge_bases}")
    print(f"Chunks:          {stats.chunks}")
    print(f"Size:            {stats.size_bytes} bytes")
    return 0


async def cmd_delete(services: RAGServices, args) -> int:
    if await services.processor.get_knowledge_base(args.kb) is None:
        print(f"✗ Unknown knowledge base '{args.kb}'")
        return 1
    await services.processor.delete_knowledge_base(args.kb)
    print(f"✓ Deleted {args.kb}")
    return 0


async def cmd_search(services: RAGServices, args) -> int:
    await _load_embeddings(services)
    config = get_adaptive_rag_config(args.question, services.settings.llm_model)
    results = await services.search.search_in_knowledge_base(args.question, args.kb, config)
    if not results:
        print("No relevant passages found.")
        return 0
    for i, r in enumerate(results, 1):
        meta = r.chunk.metadata
        print(
            f"[{i}] {meta.source_name}#{meta.chunk_index} "
            f"(similarity={r.similarity:.3f}, relevance={r.relevance:.3f})"
        )
        print(f"    {r.chunk.content[:200]}")
    return 0


async def cmd_ask(services: RAGServices, args) -> int:
    if args.kb:
        await _load_embeddings(services)

    def print_delta(delta: str) -> None:
        print(delta, end="", flush=True)

    req = AnswerRequest(
        query=args.question,
        knowledge_base_id=args.kb,
        rag_enabled=not args.no_rag,
        model_id=services.settings.llm_model,
    )
    result = await services.answer.execute(req, on_delta=print_delta if args.stream else None)

    if not result.ok or result.value is None:
        err = result.error
        print(f"\n[ERROR] {type(err).__name__}: {err}")
        return 1

    answer = result.value
    print("\n" + "=" * 80)
    print("ANSWER:")
    print("=" * 80)
    if not args.stream:
        print(answer.text)
    if answer.retrieval_error:
        print(f"\n[WARN] retrieval failed: {answer.retrieval_error}")
    if answer.sources:
        print("\n" + "=" * 80)
        print("SOURCES:")
        print("=" * 80)
        for i, s in enumerate(answer.sources, 1):
            mark = "✓" if s.used_in_response else " "
            print(f"[{i}] {mark} {s.chunk.metadata.source_name} (score={s.relevance:.3f})")
            if s.citations:
                print(f'      "{s.citations[0].text}"')
    return 0


COMMANDS = {
    "ingest": cmd_ingest,
    "list": cmd_list,
    "stats": cmd_stats,
    "delete": cmd_delete,
    "search": cmd_search,
    "ask": cmd_ask,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-engine",
        description="Local knowledge bases with retrieval-augmented answers",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    p_ingest = subparsers.add_parser("ingest", help="Create a knowledge base from text files")
    p_ingest.add_argument("--name", required=True, help="Knowledge base name")
    p_ingest.add_argument("--description", default="", help="Knowledge base description")
    p_ingest.add_argument("--verbose", action="store_true", help="Print progress")
    p_ingest.add_argument("paths", nargs="+", help="UTF-8 text files")

    subparsers.add_parser("list", help="List knowledge bases")
    subparsers.add_parser("stats", help="Show storage statistics")

    p_delete = subparsers.add_parser("delete", help="Delete a knowledge base")
    p_delete.add_argument("--kb", required=True, help="Knowledge base id")

    p_search = subparsers.add_parser("search", help="Search a knowledge base")
    p_search.add_argument("--kb", required=True, help="Knowledge base id")
    p_search.add_argument("--question", required=True)

    p_ask = subparsers.add_parser("ask", help="Answer a question")
    p_ask.add_argument("--question", required=True)
    p_ask.add_argument("--kb", default=None, help="Knowledge base id to ground the answer")
    p_ask.add_argument("--no-rag", action="store_true", help="Ignore the knowledge base")
    p_ask.add_argument("--stream", action="store_true", help="Stream tokens as they arrive")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = AppSettings()
    configure_logging(settings.log_level)
    services = build_services(settings)

    try:
        return asyncio.run(COMMANDS[args.command](services, args))
    except DomainError as ex:
        print(f"✗ {type(ex).__name__}: {ex}")
        return 1
    except OSError as ex:
        print(f"✗ Error: {ex}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
