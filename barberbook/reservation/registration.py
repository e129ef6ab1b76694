"""
One-time employee self-registration tokens.

A shop owner issues a token and shares the link; the stylist redeems it
once to create their employee record. A token moves pending -> completed
exactly once: the used flag is re-read immediately before consuming, and
the consuming write is conditional on the flag still being unset.
"""

import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional

from barberbook.config import RegistrationConfig, settings
from barberbook.reservation.errors import InvalidToken, TokenAlreadyUsed, TokenExpired
from barberbook.schemas.registration_schema import (
    EMPLOYEES_COLLECTION,
    REGISTRATION_TOKENS_COLLECTION,
    RegistrationToken,
    TokenStatus,
)
from barberbook.schemas.shop_schema import Employee
from barberbook.store.document_store import DocumentStore, PreconditionFailed

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegistrationTokenService:
    def __init__(
        self,
        store: DocumentStore,
        config: RegistrationConfig = settings.registration,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    async def issue_token(self, shop_id: str, now: Optional[datetime] = None) -> RegistrationToken:
        now = now or self._clock()
        token = RegistrationToken(
            id=secrets.token_urlsafe(16),
            shop_id=shop_id,
            expires=now + timedelta(hours=self._config.token_ttl_hours),
        )
        await self._store.set(
            REGISTRATION_TOKENS_COLLECTION,
            token.id,
            token.model_dump(by_alias=True, exclude={"id"}),
        )
        logger.info("Registration token issued for shop %s", shop_id)
        return token

    async def _load(self, shop_id: str, token_id: str, now: datetime) -> RegistrationToken:
        doc = await self._store.get(REGISTRATION_TOKENS_COLLECTION, token_id)
        if doc is None or doc.get("shopId") != shop_id:
            raise InvalidToken("Invalid registration link", shop_id=shop_id)
        token = RegistrationToken.model_validate(doc)
        expires = token.expires
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        if now > expires:
            raise TokenExpired("Registration link has expired", shop_id=shop_id)
        if token.used:
            raise TokenAlreadyUsed(
                "Registration link was already used", shop_id=shop_id, used_by=token.used_by
            )
        return token

    async def validate(self, shop_id: str, token_id: str, now: Optional[datetime] = None) -> RegistrationToken:
        """Check a token before showing the registration form."""
        return await self._load(shop_id, token_id, now or self._clock())

    async def consume(
        self,
        shop_id: str,
        token_id: str,
        name: str,
        schedule: Optional[dict[str, list[int]]] = None,
        now: Optional[datetime] = None,
    ) -> Employee:
        """Redeem the token and create the employee record, exactly once."""
        now = now or self._clock()
        await self._load(shop_id, token_id, now)

        employee = Employee(id=uuid.uuid4().hex[:20], name=name.strip(), schedule=schedule or {})

        # Re-read right before consuming; another session may have won meanwhile.
        await self._load(shop_id, token_id, now)

        batch = self._store.batch()
        batch.set(EMPLOYEES_COLLECTION, employee.id, {
            "shopId": shop_id,
            "name": employee.name,
            "schedule": employee.schedule,
            "registrationToken": token_id,
            "createdAt": now,
        })
        batch.update(
            REGISTRATION_TOKENS_COLLECTION,
            token_id,
            {
                "used": True,
                "usedBy": employee.id,
                "status": TokenStatus.COMPLETED.value,
                "completedAt": now,
            },
            expect={"used": False},
        )
        try:
            await batch.commit()
        except PreconditionFailed as e:
            logger.warning("Registration token for shop %s consumed concurrently", shop_id)
            raise TokenAlreadyUsed(
                "Registration link was already used", shop_id=shop_id
            ) from e
        logger.info("Employee %s registered for shop %s", employee.id, shop_id)
        return employee
