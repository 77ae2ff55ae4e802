from __future__ import annotations

from typing import Any, Iterable, List, Optional

from sqlalchemy import select

from src.maternity.domain.models.common import utcnow
from src.maternity.infra.db.models import DocumentORM
from src.maternity.infra.db.repositories import DocumentRepository, ModelT, matches_filters
from src.maternity.infra.db.session import SessionFactory


class SqlDocumentRepository(DocumentRepository[ModelT]):
    """SQL-backed repository storing documents as JSON rows.

    Attribute filters are applied after loading the collection because JSON
    path queries differ between database dialects.
    """

    def __init__(self, session_factory: SessionFactory, collection: str, model: type[ModelT]) -> None:
        super().__init__(collection, model)
        self._session_factory = session_factory

    def get(self, doc_id: str) -> Optional[ModelT]:
        with self._session_factory() as session:
            row = session.get(DocumentORM, (self.collection, doc_id))
            if row is None:
                return None
            return self.model.model_validate(row.data)

    def list_by_filters(self, **filters: Any) -> Iterable[ModelT]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(DocumentORM).where(DocumentORM.collection == self.collection)
            ).all()
            documents: List[ModelT] = [self.model.model_validate(row.data) for row in rows]
        return [doc for doc in documents if matches_filters(doc, filters)]

    def save(self, document: ModelT) -> None:
        payload = document.model_dump(mode="json")
        with self._session_factory() as session:
            row = session.get(DocumentORM, (self.collection, payload["id"]))
            if row is None:
                session.add(
                    DocumentORM(
                        collection=self.collection,
                        id=payload["id"],
                        data=payload,
                        updated_at=utcnow(),
                    )
                )
            else:
                row.data = payload
                row.updated_at = utcnow()
            session.commit()

    def delete(self, doc_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(DocumentORM, (self.collection, doc_id))
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True
