from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class DocumentRepository(ABC, Generic[ModelT]):
    """Storage for one collection of pydantic documents keyed by ``id``.

    ``list_by_filters`` matches documents whose attributes equal every given
    keyword value; anything richer (ranges, text search) is done by services.
    """

    def __init__(self, collection: str, model: Type[ModelT]) -> None:
        self.collection = collection
        self.model = model

    @abstractmethod
    def get(self, doc_id: str) -> Optional[ModelT]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(self, **filters: Any) -> Iterable[ModelT]:
        raise NotImplementedError

    @abstractmethod
    def save(self, document: ModelT) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, doc_id: str) -> bool:
        """Remove a document; return False if it did not exist."""
        raise NotImplementedError


def matches_filters(document: BaseModel, filters: dict[str, Any]) -> bool:
    for key, expected in filters.items():
        if expected is None:
            continue
        if getattr(document, key, None) != expected:
            return False
    return True
