"""Backfill embeddings for links that do not have one yet."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylerec.ai.embedding_service import EmbeddingServiceError, embedding_service
from stylerec.config import settings
from stylerec.db.row_store import RowStore
from stylerec.db.session import AsyncSessionLocal
from stylerec.recommend.errors import UpstreamDataError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def link_text(link: dict[str, Any]) -> str:
    """Title, brand and description joined by spaces."""
    parts = [link.get("title"), link.get("brand"), link.get("description")]
    return " ".join(p.strip() for p in parts if p and p.strip())


async def generate_embeddings_for_existing(
    batch_size: Optional[int] = None,
    limit: Optional[int] = None,
):
    """
    Generate and store embeddings for all links with a null embedding.

    Args:
        batch_size: Number of links to embed per request
        limit: Optional limit on total number of links to process
    """
    batch_size = batch_size or settings.embedding_batch_size
    logger.info(f"Starting embedding backfill with {embedding_service.provider}/{embedding_service.model_name}...")

    async with AsyncSessionLocal() as db:
        store = RowStore(db)
        links = await store.links_missing_embedding(limit=limit)

        total = len(links)
        logger.info(f"Found {total} links to process")

        if total == 0:
            logger.info("No links to process")
            return

        # Process in batches
        processed = 0
        skipped = 0
        failed = 0

        for i in range(0, total, batch_size):
            batch = links[i:i + batch_size]
            batch_num = (i // batch_size) + 1
            total_batches = (total + batch_size - 1) // batch_size

            logger.info(f"Processing batch {batch_num}/{total_batches} ({len(batch)} links)")

            texts = [link_text(link) for link in batch]
            try:
                vectors = await embedding_service.generate_embeddings_batch(texts, batch_size=batch_size)
            except EmbeddingServiceError as e:
                logger.error(f"Failed to embed batch {batch_num}: {e}")
                failed += len(batch)
                continue

            for link, vector in zip(batch, vectors):
                if vector is None:
                    skipped += 1
                    continue
                try:
                    await store.set_link_embedding(link["id"], vector.tolist())
                    processed += 1
                except UpstreamDataError as e:
                    logger.error(f"Failed to store embedding for link {link['id']}: {e}")
                    failed += 1

            logger.info(f"Processed {processed}/{total} links")

        logger.info(
            f"Embedding backfill complete: {processed} processed, {skipped} without text, "
            f"{failed} failed out of {total} total links"
        )


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate embeddings for existing links")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help=f"Number of links to embed per request (default: {settings.embedding_batch_size})",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Limit number of links to process (default: all)",
    )

    args = parser.parse_args()

    asyncio.run(generate_embeddings_for_existing(
        batch_size=args.batch_size,
        limit=args.limit,
    ))
