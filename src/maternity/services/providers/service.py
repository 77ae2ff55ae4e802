from __future__ import annotations

import logging
from typing import List, Optional

from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.provider import ProviderAccount, ProviderStatus
from src.maternity.errors import ConflictError, DomainValidationError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.messaging.service import NotificationService, notification_service

logger = logging.getLogger("maternity.providers")


class ProviderService:
    """Provider registration and the admin approval queue.

    New registrations wait in ``pending_approval``; only pending accounts can
    be approved or rejected.
    """

    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    def register_provider(self, account: ProviderAccount) -> ProviderAccount:
        if store.providers.get(account.id) is not None:
            raise ConflictError("Provider is already registered")
        account = account.model_copy(
            update={
                "status": ProviderStatus.PENDING_APPROVAL,
                "approved_at": None,
                "approved_by": None,
                "rejection_reason": None,
            }
        )
        store.providers.save(account)
        return account

    def get_provider(self, provider_id: str) -> ProviderAccount:
        account = store.providers.get(provider_id)
        if account is None:
            raise NotFoundError("Provider not found")
        return account

    def list_providers(self, *, status: Optional[ProviderStatus] = None) -> List[ProviderAccount]:
        accounts = list(store.providers.list_by_filters(status=status))
        accounts.sort(key=lambda a: a.registered_at)
        return accounts

    def list_pending(self) -> List[ProviderAccount]:
        return self.list_providers(status=ProviderStatus.PENDING_APPROVAL)

    def _pending(self, provider_id: str) -> ProviderAccount:
        account = self.get_provider(provider_id)
        if account.status != ProviderStatus.PENDING_APPROVAL:
            raise ConflictError(
                "Provider is not pending approval",
                details={"status": account.status.value},
            )
        return account

    def approve(self, provider_id: str, *, admin_id: str) -> ProviderAccount:
        account = self._pending(provider_id)
        account.status = ProviderStatus.ACTIVE
        account.approved_at = utcnow()
        account.approved_by = admin_id
        store.providers.save(account)

        self._notifications.notify(
            user_id=account.id,
            type=NotificationType.ACCOUNT,
            title="Account approved",
            message="Your provider account has been approved.",
            related_id=account.id,
        )
        logger.info("Provider %s approved", account.id)
        return account

    def reject(self, provider_id: str, *, admin_id: str, reason: str) -> ProviderAccount:
        if not reason or not reason.strip():
            raise DomainValidationError("A rejection reason is required")
        account = self._pending(provider_id)
        account.status = ProviderStatus.REJECTED
        account.approved_by = admin_id
        account.rejection_reason = reason.strip()
        store.providers.save(account)

        self._notifications.notify(
            user_id=account.id,
            type=NotificationType.ACCOUNT,
            title="Account not approved",
            message=account.rejection_reason,
            related_id=account.id,
        )
        logger.info("Provider %s rejected", account.id)
        return account


provider_service = ProviderService(notification_service)
