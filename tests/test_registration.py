"""Tests for one-time employee registration tokens."""

import asyncio
from datetime import timedelta

import pytest

from barberbook.config import RegistrationConfig
from barberbook.reservation.errors import InvalidToken, TokenAlreadyUsed, TokenExpired
from barberbook.reservation.registration import RegistrationTokenService
from barberbook.schemas.registration_schema import (
    EMPLOYEES_COLLECTION,
    REGISTRATION_TOKENS_COLLECTION,
)
from tests.conftest import NOW


@pytest.fixture
def tokens(store):
    return RegistrationTokenService(
        store, config=RegistrationConfig(token_ttl_hours=72), clock=lambda: NOW
    )


class TestIssueToken:
    @pytest.mark.asyncio
    async def test_token_is_stored_pending(self, tokens, store):
        token = await tokens.issue_token("acme")
        doc = await store.get(REGISTRATION_TOKENS_COLLECTION, token.id)
        assert doc["shopId"] == "acme"
        assert doc["used"] is False
        assert doc["status"] == "pending"
        assert token.expires == NOW + timedelta(hours=72)

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, tokens):
        first = await tokens.issue_token("acme")
        second = await tokens.issue_token("acme")
        assert first.id != second.id


class TestConsume:
    @pytest.mark.asyncio
    async def test_consume_creates_employee(self, tokens, store):
        token = await tokens.issue_token("acme")
        employee = await tokens.consume(
            "acme", token.id, "  Jane  ", schedule={"Monday": [9, 10]}
        )
        assert employee.name == "Jane"
        assert employee.works_at("Monday", 9)

        stored = await store.get(EMPLOYEES_COLLECTION, employee.id)
        assert stored["shopId"] == "acme"
        doc = await store.get(REGISTRATION_TOKENS_COLLECTION, token.id)
        assert doc["used"] is True
        assert doc["usedBy"] == employee.id
        assert doc["status"] == "completed"
        assert doc["completedAt"] == NOW

    @pytest.mark.asyncio
    async def test_second_use_rejected(self, tokens):
        token = await tokens.issue_token("acme")
        await tokens.consume("acme", token.id, "Jane")
        with pytest.raises(TokenAlreadyUsed):
            await tokens.consume("acme", token.id, "Bob")

    @pytest.mark.asyncio
    async def test_concurrent_use_has_one_winner(self, tokens, store):
        token = await tokens.issue_token("acme")
        results = await asyncio.gather(
            tokens.consume("acme", token.id, "Jane"),
            tokens.consume("acme", token.id, "Bob"),
            return_exceptions=True,
        )
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert sum(1 for r in results if isinstance(r, TokenAlreadyUsed)) == 1
        assert len(await store.query(EMPLOYEES_COLLECTION, {"shopId": "acme"})) == 1

    @pytest.mark.asyncio
    async def test_unknown_token(self, tokens):
        with pytest.raises(InvalidToken):
            await tokens.consume("acme", "does-not-exist", "Jane")

    @pytest.mark.asyncio
    async def test_token_for_other_shop(self, tokens):
        token = await tokens.issue_token("other")
        with pytest.raises(InvalidToken):
            await tokens.consume("acme", token.id, "Jane")

    @pytest.mark.asyncio
    async def test_expired_token(self, tokens):
        token = await tokens.issue_token("acme")
        with pytest.raises(TokenExpired):
            await tokens.consume("acme", token.id, "Jane", now=NOW + timedelta(hours=73))

    @pytest.mark.asyncio
    async def test_validate_does_not_consume(self, tokens, store):
        token = await tokens.issue_token("acme")
        await tokens.validate("acme", token.id)
        doc = await store.get(REGISTRATION_TOKENS_COLLECTION, token.id)
        assert doc["used"] is False
