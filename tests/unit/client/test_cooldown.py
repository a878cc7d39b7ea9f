# tests/unit/client/test_cooldown.py
"""Unit tests for artisan/client/cooldown.py"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from artisan.client import cooldown
from artisan.client.errors import CooldownError, TransportError
from artisan.models.character import Character


NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestRemainingSeconds:
    """Tests for remaining_seconds_from."""

    def test_future_expiration(self):
        assert cooldown.remaining_seconds_from(NOW + timedelta(seconds=4), now=NOW) == 4.0

    def test_past_expiration_is_zero(self):
        assert cooldown.remaining_seconds_from(NOW - timedelta(seconds=4), now=NOW) == 0.0

    def test_none_is_zero(self):
        assert cooldown.remaining_seconds_from(None) == 0.0

    def test_iso_string_with_z(self):
        assert cooldown.remaining_seconds_from("2026-01-01T12:00:02.500000Z", now=NOW) == 2.5


class TestExtractCooldownSeconds:
    """Tests for extract_cooldown_seconds."""

    def test_from_text(self):
        assert cooldown.extract_cooldown_seconds("Character in cooldown: 3.50 seconds left") == 3.5

    def test_from_cooldown_error(self):
        error = CooldownError("whatever", remaining_seconds=7.0)
        assert cooldown.extract_cooldown_seconds(error) == 7.0

    def test_from_transport_error_message(self):
        error = TransportError("Character in cooldown: 2 seconds left", status=400)
        assert cooldown.extract_cooldown_seconds(error) == 2.0

    def test_none_and_unrelated(self):
        assert cooldown.extract_cooldown_seconds(None) is None
        assert cooldown.extract_cooldown_seconds("Inventory full") is None


class TestHandleCooldown:
    """Tests for handle_cooldown."""

    @pytest.mark.asyncio
    async def test_expired_cooldown_does_not_sleep(self, sleeps):
        """An expiration in the past returns at once."""
        client = AsyncMock()
        client.fetch_details.return_value = Character(
            name="Alice", cooldown_expiration=datetime.now(timezone.utc) - timedelta(seconds=1),
        )

        remaining = await cooldown.handle_cooldown(client, "Alice")

        assert remaining == 0.0
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_waits_remaining_plus_buffer(self, sleeps):
        client = AsyncMock()
        client.fetch_details.return_value = Character(
            name="Alice", cooldown_expiration=datetime.now(timezone.utc) + timedelta(seconds=3),
        )

        remaining = await cooldown.handle_cooldown(client, "Alice", buffer_seconds=0.5)

        assert 2.0 < remaining <= 3.0
        assert len(sleeps) == 1
        assert sleeps[0] == pytest.approx((remaining + 0.5) * 1000)

    @pytest.mark.asyncio
    async def test_falls_back_to_cooldown_seconds(self, sleeps):
        """Without an expiration the relative cooldown is used."""
        client = AsyncMock()
        client.fetch_details.return_value = Character(name="Alice", cooldown=2)

        assert await cooldown.handle_cooldown(client, "Alice", buffer_seconds=0) == 2.0
        assert sleeps == [2000.0]

    @pytest.mark.asyncio
    async def test_fetch_failure_counts_as_no_cooldown(self, sleeps):
        client = AsyncMock()
        client.fetch_details.side_effect = TransportError("boom", status=500)

        assert await cooldown.handle_cooldown(client, "Alice") == 0.0
        assert sleeps == []
