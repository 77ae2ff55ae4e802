from __future__ import annotations

import hashlib
from typing import Dict, Optional

from src.maternity.domain.models.user import User, UserRole


class InMemoryUserService:
    """Small in-memory user store keyed by auth subject.

    The security layer maps a hashed API key (or, with auth disabled, the
    development identity headers) to a concrete User so that downstream code
    can reason about patients, providers and admins.
    """

    def __init__(self) -> None:
        self._by_subject: Dict[str, User] = {}

    def upsert_user_for_subject(
        self,
        *,
        subject: str,
        user_id: str,
        role: UserRole,
        institution_id: Optional[str] = None,
    ) -> User:
        existing = self._by_subject.get(subject)
        if existing is not None and existing.id == user_id and existing.role == role:
            if institution_id is not None and existing.institution_id != institution_id:
                existing = existing.model_copy(update={"institution_id": institution_id})
                self._by_subject[subject] = existing
            return existing

        user = User(
            id=user_id,
            email=f"user+{hashlib.sha256(user_id.encode('utf-8')).hexdigest()[:12]}@example.com",
            role=role,
            institution_id=institution_id,
        )
        self._by_subject[subject] = user
        return user

    def register(self, subject: str, user: User) -> User:
        self._by_subject[subject] = user
        return user

    def get_user_by_subject(self, subject: str) -> Optional[User]:
        return self._by_subject.get(subject)


user_service = InMemoryUserService()
