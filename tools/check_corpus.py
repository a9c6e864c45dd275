from __future__ import annotations

"""CLI utility to validate the corpus artifact before deploying it."""

import argparse
from pathlib import Path

from insight_rag.app.dependencies import get_embedding_config_report
from insight_rag.app.settings import settings
from insight_rag.rag.corpus import CorpusStore
from insight_rag.rag.errors import CorpusUnavailable


def main() -> None:
    """Load the corpus and print its stats, failing on a broken artifact."""
    parser = argparse.ArgumentParser(description="Validate the embeddings corpus.")
    parser.add_argument(
        "--path",
        default=settings.corpus_path,
        help="Corpus JSON file to validate.",
    )
    args = parser.parse_args()

    store = CorpusStore(path=Path(args.path))
    try:
        stats = store.stats()
    except CorpusUnavailable as exc:
        raise SystemExit(f"Corpus unavailable: {exc}") from exc

    for key, value in stats.items():
        print(f"{key}: {value}")

    report = get_embedding_config_report(int(stats["embedding_dimension"]))
    print(f"embedding_config: {report.status}")
    if report.detail:
        print(f"  {report.detail}")
    if not report.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
