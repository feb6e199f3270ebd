import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ValidationFailedError
from app.models.ecm import Document
from app.services.common import apply_pagination

logger = logging.getLogger(__name__)

SEARCH_FIELDS = {
    "title": Document.title,
    "content": Document.content,
}


def _like_pattern(q: str) -> str:
    escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SearchService:
    @staticmethod
    def statement(q: str, field: str = "title", visible=None):
        """Case-insensitive substring match over one text field.

        Uses ILIKE so it runs on SQLite as well as PostgreSQL. ``visible``
        is an optional SQL filter restricting which documents may match.
        """
        column = SEARCH_FIELDS.get(field)
        if column is None:
            raise ValidationFailedError(
                f"Invalid search field. Allowed: {', '.join(sorted(SEARCH_FIELDS))}"
            )
        stmt = select(Document)
        if q:
            stmt = stmt.where(column.ilike(_like_pattern(q), escape="\\"))
        if visible is not None:
            stmt = stmt.where(visible)
        return stmt.order_by(Document.last_modified_at.desc(), Document.id)

    @staticmethod
    def search(
        db: Session,
        q: str,
        field: str = "title",
        visible=None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Document]:
        stmt = SearchService.statement(q, field, visible)
        if limit is not None:
            stmt = apply_pagination(stmt, limit, offset)
        results = db.scalars(stmt).all()
        logger.debug("Search on %s for %r matched %d documents", field, q, len(results))
        return results
