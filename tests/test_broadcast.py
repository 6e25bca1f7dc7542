"""
Tests for BroadcastService - paced fan-out to all known users
"""
import pytest
from unittest.mock import AsyncMock, patch

from app.domain.services.broadcast_service import BroadcastService, extract_broadcast_text
from tests.conftest import ADMIN_ID


class TestExtractBroadcastText:

    @pytest.mark.unit
    @pytest.mark.parametrize("text,expected", [
        ("/broadcast Hello all", "Hello all"),
        ("/broadcast@SaleBrokerBot  spaced  out ", "spaced  out"),
        ("/broadcast", ""),
        ("/broadcast    ", ""),
        ("/broadcast line one\nline two", "line one\nline two"),
    ])
    def test_extract(self, text, expected):
        assert extract_broadcast_text(text) == expected


class TestBroadcastService:

    @pytest.mark.asyncio
    async def test_sends_to_every_user_with_prefix(self, gateway):
        report = await BroadcastService(gateway, delay_seconds=0).broadcast([1, 2, 3], "Rates <updated>")

        assert report.attempted == 3
        assert report.sent == 3
        assert [c.chat_id for c in gateway.calls] == [1, 2, 3]
        assert gateway.calls[0].payload["text"] == "📣 Broadcast:\n\nRates &lt;updated&gt;"

    @pytest.mark.asyncio
    async def test_failed_recipient_does_not_stop_the_rest(self, gateway):
        gateway.fail_chat_ids.add(2)

        report = await BroadcastService(gateway, delay_seconds=0).broadcast([1, 2, 3], "hi")

        assert [c.chat_id for c in gateway.calls] == [1, 2, 3]
        assert report.sent == 2
        assert report.failed == 1

    @pytest.mark.asyncio
    async def test_pauses_between_sends(self, gateway):
        with patch("app.domain.services.broadcast_service.asyncio.sleep", new=AsyncMock()) as sleep:
            await BroadcastService(gateway, delay_seconds=0.2).broadcast([1, 2, 3], "hi")

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.2)

    @pytest.mark.asyncio
    async def test_run_reports_count_to_admin(self, gateway):
        await BroadcastService(gateway, delay_seconds=0).run(ADMIN_ID, [1, 2], "hi")

        assert gateway.last_message_to(ADMIN_ID) == "Broadcast sent to ~2 users."
