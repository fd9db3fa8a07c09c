"""Row store over the async SQLAlchemy session."""

import logging
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import Table, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stylerec.db.models import Base, Link, Recommendation, SavedLink
from stylerec.recommend.errors import UpstreamDataError
from stylerec.recommend.types import RecommendationRecord, SavedItem

logger = logging.getLogger(__name__)


class RowStore:
    """
    Table-level access used by the recommendation pipeline.

    Generic operations take a table name and equality filters: a scalar value
    matches with ``=``, ``None`` with ``IS NULL`` and a list/tuple/set with
    ``IN``. Every SQLAlchemy failure is re-raised as UpstreamDataError so
    callers never see driver exceptions.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _table(self, name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise ValueError(f"Unknown table: {name}") from None

    @staticmethod
    def _conditions(table: Table, filters: Optional[dict[str, Any]], negate: bool = False) -> list:
        conditions = []
        for column_name, value in (filters or {}).items():
            column = table.c[column_name]
            if isinstance(value, (list, tuple, set)):
                values = list(value)
                conditions.append(column.not_in(values) if negate else column.in_(values))
            elif value is None:
                conditions.append(column.is_not(None) if negate else column.is_(None))
            else:
                conditions.append(column != value if negate else column == value)
        return conditions

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        *,
        exclude: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Select rows matching all filters.

        Args:
            table: Table name
            filters: Column equality filters
            exclude: Column filters that rows must NOT match
            order_by: Optional column to sort by
            descending: Sort direction for order_by
            limit: Maximum number of rows

        Returns:
            List of row dictionaries
        """
        tbl = self._table(table)
        query = select(tbl).where(
            *self._conditions(tbl, filters),
            *self._conditions(tbl, exclude, negate=True),
        )
        if order_by:
            column = tbl.c[order_by]
            query = query.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            query = query.limit(limit)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise UpstreamDataError(f"select {table}", str(e)) from e
        return [dict(row._mapping) for row in result.fetchall()]

    async def insert(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        """Insert rows and commit. Returns the number of rows written."""
        if not rows:
            return 0
        tbl = self._table(table)
        try:
            await self.db.execute(insert(tbl), list(rows))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpstreamDataError(f"insert {table}", str(e)) from e
        return len(rows)

    async def update(self, table: str, filters: dict[str, Any], patch: dict[str, Any]) -> int:
        """Apply patch to rows matching filters and commit. Returns the affected row count."""
        if not filters:
            raise ValueError("update requires at least one filter")
        tbl = self._table(table)
        try:
            result = await self.db.execute(
                update(tbl).where(*self._conditions(tbl, filters)).values(**patch)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpstreamDataError(f"update {table}", str(e)) from e
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Saved items and corpus
    # ------------------------------------------------------------------

    @staticmethod
    def _to_saved_item(saved: SavedLink, link: Link) -> SavedItem:
        return SavedItem(
            id=saved.id,
            user_id=saved.user_id,
            url=link.url,
            link_id=link.id,
            title=link.title,
            brand=link.brand,
            price=link.price,
            description=link.description,
            thumbnail=link.thumbnail,
            embedding=link.embedding,
        )

    async def load_saved_items(self, user_id: str, limit: int = 20) -> list[SavedItem]:
        """
        Load a user's saved items joined with their link metadata, newest first.

        Saved rows whose link no longer exists are dropped.
        """
        query = (
            select(SavedLink, Link)
            .outerjoin(Link, SavedLink.link_id == Link.id)
            .where(SavedLink.user_id == user_id)
            .order_by(SavedLink.created_at.desc(), SavedLink.id.desc())
            .limit(limit)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise UpstreamDataError("load saved items", str(e)) from e

        items = []
        for saved, link in result.all():
            if link is None:
                logger.debug(f"Saved item {saved.id} has no link data, skipping")
                continue
            items.append(self._to_saved_item(saved, link))
        return items

    async def load_corpus(
        self,
        user_id: str,
        limit: int = 200,
        require_embedding: bool = True,
    ) -> list[SavedItem]:
        """
        Load other users' saved items as ranking candidates.

        Links the requesting user saved are excluded, and a link saved by
        several users appears once.

        Args:
            user_id: Requesting user, whose items are excluded
            limit: Maximum number of saved rows to read
            require_embedding: Only return links that already carry an embedding

        Returns:
            List of SavedItem, newest first
        """
        own_links = select(SavedLink.link_id).where(SavedLink.user_id == user_id)
        query = (
            select(SavedLink, Link)
            .join(Link, SavedLink.link_id == Link.id)
            .where(SavedLink.user_id != user_id, Link.id.not_in(own_links))
            .order_by(SavedLink.created_at.desc(), SavedLink.id.desc())
            .limit(limit)
        )
        if require_embedding:
            query = query.where(Link.embedding.is_not(None))

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise UpstreamDataError("load corpus", str(e)) from e

        seen_links: set[int] = set()
        corpus = []
        for saved, link in result.all():
            if link.id in seen_links:
                continue
            seen_links.add(link.id)
            corpus.append(self._to_saved_item(saved, link))
        return corpus

    async def links_missing_embedding(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Links whose embedding has not been computed yet."""
        return await self.select("links", {"embedding": None}, order_by="id", limit=limit)

    async def set_link_embedding(self, link_id: int, embedding: Iterable[float]) -> bool:
        """Store an embedding on a link. Returns False when the link does not exist."""
        updated = await self.update(
            "links", {"id": link_id}, {"embedding": [float(v) for v in embedding]}
        )
        return updated > 0

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    async def save_recommendations(self, records: Sequence[RecommendationRecord]) -> int:
        """Insert recommendation records."""
        return await self.insert(Recommendation.__tablename__, [r.to_row() for r in records])

    async def list_recommendations(self, user_id: str, limit: int = 20) -> list[RecommendationRecord]:
        """Stored recommendations for a user, newest first."""
        rows = await self.select(
            Recommendation.__tablename__,
            {"user_id": user_id},
            order_by="id",
            descending=True,
            limit=limit,
        )
        return [
            RecommendationRecord(
                user_id=row["user_id"],
                url=row["url"],
                title=row["title"],
                brand=row["brand"],
                price=row["price"],
                image_url=row["image_url"],
                reason=row["reason"] or "",
                feedback=row["feedback"],
                is_saved=row["is_saved"],
            )
            for row in rows
        ]
