"""Command line entry point for batch ingestion and ad-hoc queries.

Usage:
    curriculum-rag ingest documents.json
    curriculum-rag ingest documents.json --dry-run --batch-size 50
    curriculum-rag search "Comment additionner des fractions ?" --niveau 6e --matiere mathematiques
    curriculum-rag stats
    curriculum-rag serve
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter

from curriculum_rag.config import get_settings
from curriculum_rag.container import Container, build_container
from curriculum_rag.models.document import RawDocument
from curriculum_rag.models.ingestion import IngestionOptions
from curriculum_rag.utils.errors import RagException
from curriculum_rag.utils.logging import setup_logging

_documents_adapter = TypeAdapter(List[RawDocument])


def load_documents(path: Path) -> List[RawDocument]:
    """Read a JSON list of documents (or an object with a "documents" key)."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("documents", [])
    return _documents_adapter.validate_python(data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="curriculum-rag",
        description="Ingest curriculum documents into Qdrant and query them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Chunk, embed and index a JSON file of documents")
    ingest.add_argument("file", type=Path, help="JSON file with a list of documents")
    ingest.add_argument("--dry-run", action="store_true", help="Chunk and embed without writing to Qdrant")
    ingest.add_argument("--batch-size", type=int, default=None, help="Embedding and upsert batch size")
    ingest.add_argument(
        "--raw-content",
        action="store_true",
        help="Embed raw chunk text instead of the contextualized text",
    )

    search = sub.add_parser("search", help="Query the collection")
    search.add_argument("query", help="Question text")
    search.add_argument("--niveau", required=True, help="School level, e.g. 6e")
    search.add_argument("--matiere", required=True, help="Subject, e.g. mathematiques")
    search.add_argument("--limit", type=int, default=None, help="Number of passages")
    search.add_argument("--min-score", type=float, default=None, help="Similarity floor (0-1)")
    search.add_argument("--context", action="store_true", help="Print the formatted prompt context")

    sub.add_parser("stats", help="Show collection statistics")
    sub.add_parser("serve", help="Run the HTTP API")
    return parser


async def _ingest(container: Container, args: argparse.Namespace) -> int:
    documents = load_documents(args.file)
    defaults = container.ingestion_pipeline.default_options()
    options = IngestionOptions(
        batch_size=args.batch_size or defaults.batch_size,
        use_contextualized_content=not args.raw_content and defaults.use_contextualized_content,
        dry_run=args.dry_run,
    )
    result = await container.ingestion_pipeline.run(documents, options)
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


async def _search(container: Container, args: argparse.Namespace) -> int:
    retrieval = container.retrieval_service
    if args.context:
        context = await retrieval.get_context(
            args.query, args.niveau, args.matiere, limit=args.limit, min_similarity=args.min_score
        )
        print(context.context or "(no passages found)")
        return 0
    result = await retrieval.search_passages(args.query, args.niveau, args.matiere, args.limit, args.min_score)
    print(result.model_dump_json(indent=2, exclude={"hits": {"__all__": {"payload"}}}))
    return 0 if result.available else 1


async def _stats(container: Container, args: argparse.Namespace) -> int:
    stats = await container.ingestion_pipeline.get_ingestion_stats()
    if stats is None:
        print("Collection statistics unavailable", file=sys.stderr)
        return 1
    print(stats.model_dump_json(indent=2))
    return 0


_COMMANDS = {"ingest": _ingest, "search": _search, "stats": _stats}


async def _dispatch(args: argparse.Namespace, container: Optional[Container] = None) -> int:
    container = container or build_container(get_settings())
    await container.startup()
    try:
        return await _COMMANDS[args.command](container, args)
    finally:
        await container.shutdown()


def main(argv: Optional[List[str]] = None, container: Optional[Container] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        from curriculum_rag.main import run

        run()
        return 0

    # stdout carries command output
    setup_logging(container.settings if container is not None else None, stream=sys.stderr)
    try:
        return asyncio.run(_dispatch(args, container))
    except RagException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    except (OSError, ValueError) as e:
        # Unreadable file or malformed JSON
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
