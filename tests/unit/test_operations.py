"""Tests for outbound Web API operations."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from slack_sdk.errors import SlackApiError

from slack_bot.config.options import (
    Option,
    apply_options,
    build_config,
    with_app_level_token,
    with_bot_token,
    with_debug,
    with_icon_emoji,
    with_username,
)
from slack_bot.config.schema import BotConfig
from slack_bot.core.errors import ConfigurationError, NotAuthenticatedError, PlatformAPIError
from slack_bot.core.operations import SlackOperations
from slack_bot.models.events import MessageEvent


@pytest.fixture
async def ops(
    bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
) -> SlackOperations:
    operations = SlackOperations(bot_config, mock_log, web_client=mock_web_client)
    await operations.authenticate()
    return operations


class TestAuthenticate:
    """Tests for resolving the bot identity."""

    async def test_identity_cached(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        operations = SlackOperations(bot_config, mock_log, web_client=mock_web_client)
        assert operations.identity is None
        assert operations.bot_id == ""

        identity = await operations.authenticate()

        assert identity.bot_id == "B0BOT"
        assert identity.user_id == "U0BOT"
        assert identity.team_id == "T0TEAM"
        assert operations.identity is identity
        assert operations.user_id == "U0BOT"
        mock_log.info.assert_any_call(
            "authenticated", user_id="U0BOT", bot_id="B0BOT", team_id="T0TEAM"
        )

    @pytest.mark.parametrize("clear_token", [with_bot_token(""), with_app_level_token("")])
    async def test_missing_token(
        self,
        bot_config: BotConfig,
        mock_web_client: MagicMock,
        mock_log: MagicMock,
        clear_token: Option,
    ) -> None:
        config = apply_options(bot_config, [clear_token])
        operations = SlackOperations(config, mock_log, web_client=mock_web_client)

        with pytest.raises(ConfigurationError):
            await operations.authenticate()
        mock_web_client.auth_test.assert_not_awaited()

    async def test_rejected_credentials(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        mock_web_client.auth_test.side_effect = SlackApiError(
            "invalid_auth", {"ok": False, "error": "invalid_auth"}
        )
        operations = SlackOperations(bot_config, mock_log, web_client=mock_web_client)

        with pytest.raises(PlatformAPIError) as exc_info:
            await operations.authenticate()

        assert exc_info.value.error == "invalid_auth"
        assert isinstance(exc_info.value.__cause__, SlackApiError)
        assert operations.identity is None

    async def test_network_failure_propagates_unchanged(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        mock_web_client.auth_test.side_effect = ConnectionError("network down")
        operations = SlackOperations(bot_config, mock_log, web_client=mock_web_client)

        with pytest.raises(ConnectionError):
            await operations.authenticate()

    async def test_debug_binds_auth_info(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        config = apply_options(bot_config, [with_debug()])
        operations = SlackOperations(config, mock_log, web_client=mock_web_client)

        await operations.authenticate()

        auth_info = mock_log.bind.call_args.kwargs["slack_auth_info"]
        assert auth_info["user"]["bot_id"] == "B0BOT"
        assert auth_info["team"]["team_id"] == "T0TEAM"

    async def test_no_bind_without_debug(self, ops: SlackOperations, mock_log: MagicMock) -> None:
        mock_log.bind.assert_not_called()


class TestRequiresAuthentication:
    """Outbound calls fail before authenticate()."""

    async def test_post_before_authenticate(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        operations = SlackOperations(bot_config, mock_log, web_client=mock_web_client)

        with pytest.raises(NotAuthenticatedError):
            await operations.post_message("C1", "hello")
        mock_web_client.chat_postMessage.assert_not_awaited()

    def test_upload_before_authenticate(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        operations = SlackOperations(bot_config, mock_log, web_client=mock_web_client)

        with pytest.raises(NotAuthenticatedError):
            operations.upload_file(channel="C1", content="data")


class TestPostMessage:
    """Tests for posting messages."""

    async def test_post_message(self, ops: SlackOperations, mock_web_client: MagicMock) -> None:
        ts = await ops.post_message("C1", "hello")

        assert ts == "1700000000.000100"
        mock_web_client.chat_postMessage.assert_awaited_once_with(channel="C1", text="hello")

    async def test_overrides_added_when_configured(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        config = apply_options(
            bot_config, [with_username("deploy-bot"), with_icon_emoji(":rocket:")]
        )
        operations = SlackOperations(config, mock_log, web_client=mock_web_client)
        await operations.authenticate()

        await operations.post_message("C1", "hello", blocks=[{"type": "divider"}])

        mock_web_client.chat_postMessage.assert_awaited_once_with(
            channel="C1",
            text="hello",
            blocks=[{"type": "divider"}],
            username="deploy-bot",
            icon_emoji=":rocket:",
        )

    async def test_explicit_username_wins(
        self, bot_config: BotConfig, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        config = apply_options(bot_config, [with_username("deploy-bot")])
        operations = SlackOperations(config, mock_log, web_client=mock_web_client)
        await operations.authenticate()

        await operations.post_message("C1", "hello", username="someone-else")

        kwargs = mock_web_client.chat_postMessage.call_args.kwargs
        assert kwargs["username"] == "someone-else"
        assert "icon_emoji" not in kwargs

    async def test_post_ephemeral(self, ops: SlackOperations, mock_web_client: MagicMock) -> None:
        ts = await ops.post_ephemeral_message("C1", "U1", "only you")

        assert ts == "1700000000.000200"
        mock_web_client.chat_postEphemeral.assert_awaited_once_with(
            channel="C1", user="U1", text="only you"
        )

    async def test_reply_starts_thread(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        message = MessageEvent(text="hi", user="U1", bot_id="", channel="C1", ts="1.0")

        await ops.reply(message, "hello back")

        mock_web_client.chat_postMessage.assert_awaited_once_with(
            channel="C1", text="hello back", thread_ts="1.0"
        )

    async def test_reply_stays_in_thread(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        message = MessageEvent(
            text="hi", user="U1", bot_id="", channel="C1", ts="2.0", thread_ts="1.0"
        )

        await ops.reply(message, "hello back")

        assert mock_web_client.chat_postMessage.call_args.kwargs["thread_ts"] == "1.0"

    async def test_api_error_classified(
        self, ops: SlackOperations, mock_web_client: MagicMock, mock_log: MagicMock
    ) -> None:
        mock_web_client.chat_postMessage.side_effect = SlackApiError(
            "not_in_channel",
            {
                "ok": False,
                "error": "not_in_channel",
                "response_metadata": {"messages": ["[ERROR] bot is not in channel"]},
            },
        )

        with pytest.raises(PlatformAPIError) as exc_info:
            await ops.post_message("C1", "hello")

        assert exc_info.value.operation == "chat.postMessage"
        mock_log.error.assert_called_once_with(
            "platform_api_error",
            operation="chat.postMessage",
            message="[ERROR] bot is not in channel",
        )


class TestReactionsAndConversations:
    """Tests for reactions, conversations and lookups."""

    async def test_add_and_remove_reaction(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        await ops.add_reaction("C1", "1.0", "eyes")
        await ops.remove_reaction("C1", "1.0", "eyes")

        mock_web_client.reactions_add.assert_awaited_once_with(
            channel="C1", timestamp="1.0", name="eyes"
        )
        mock_web_client.reactions_remove.assert_awaited_once_with(
            channel="C1", timestamp="1.0", name="eyes"
        )

    async def test_join_and_leave(self, ops: SlackOperations, mock_web_client: MagicMock) -> None:
        channel = await ops.join_conversation("C1")
        await ops.leave_conversation("C1")

        assert channel == {"id": "C1"}
        mock_web_client.conversations_join.assert_awaited_once_with(channel="C1")
        mock_web_client.conversations_leave.assert_awaited_once_with(channel="C1")

    async def test_list_conversations(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        mock_web_client.conversations_list.return_value = {
            "ok": True,
            "channels": [{"id": "C1", "name": "general"}],
        }

        channels = await ops.list_conversations(team_id="T0TEAM")

        assert channels == [{"id": "C1", "name": "general"}]
        mock_web_client.conversations_list.assert_awaited_once_with(
            exclude_archived=True, limit=100, team_id="T0TEAM"
        )

    async def test_list_conversations_follows_cursor(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        mock_web_client.conversations_list.side_effect = [
            {
                "ok": True,
                "channels": [{"id": "C1", "name": "general"}],
                "response_metadata": {"next_cursor": "page-2"},
            },
            {
                "ok": True,
                "channels": [{"id": "C2", "name": "random"}],
                "response_metadata": {"next_cursor": ""},
            },
        ]

        channels = await ops.list_conversations()

        assert [c["id"] for c in channels] == ["C1", "C2"]
        second_call = mock_web_client.conversations_list.await_args_list[1]
        assert second_call.kwargs == {"exclude_archived": True, "limit": 100, "cursor": "page-2"}

    async def test_list_conversations_max_pages(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        mock_web_client.conversations_list.return_value = {
            "ok": True,
            "channels": [{"id": "C1", "name": "general"}],
            "response_metadata": {"next_cursor": "page-2"},
        }

        channels = await ops.list_conversations(max_pages=1)

        assert [c["id"] for c in channels] == ["C1"]
        mock_web_client.conversations_list.assert_awaited_once_with(
            exclude_archived=True, limit=100
        )

    async def test_get_user_info(self, ops: SlackOperations, mock_web_client: MagicMock) -> None:
        assert await ops.get_user_info("U1") == {"id": "U1"}
        mock_web_client.users_info.assert_awaited_once_with(user="U1")

    async def test_team_info_cached(self, ops: SlackOperations, mock_web_client: MagicMock) -> None:
        first = await ops.get_team_info()
        second = await ops.get_team_info()

        assert first == second == {"id": "T0TEAM"}
        mock_web_client.team_info.assert_awaited_once()

    async def test_team_info_failure_not_cached(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        mock_web_client.team_info.side_effect = [
            SlackApiError("ratelimited", {"ok": False, "error": "ratelimited"}),
            {"ok": True, "team": {"id": "T0TEAM"}},
        ]

        with pytest.raises(PlatformAPIError):
            await ops.get_team_info()
        assert await ops.get_team_info() == {"id": "T0TEAM"}


class TestUploadFile:
    """Tests for background file uploads."""

    async def test_upload_returns_task(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        task = ops.upload_file(channel="C1", content="report", filename="report.txt")

        summary = await task

        assert summary == {"id": "F1", "name": "report.txt"}
        mock_web_client.files_upload_v2.assert_awaited_once_with(
            channel="C1", content="report", filename="report.txt"
        )

    async def test_upload_prefers_file_key(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        mock_web_client.files_upload_v2.return_value = {"ok": True, "file": {"id": "F2"}}
        assert await ops.upload_file(channel="C1", content="x") == {"id": "F2"}

    async def test_upload_error_surfaces_through_task(
        self, ops: SlackOperations, mock_web_client: MagicMock
    ) -> None:
        mock_web_client.files_upload_v2.side_effect = SlackApiError(
            "invalid_channel", {"ok": False, "error": "invalid_channel"}
        )

        task = ops.upload_file(channel="nope", content="x")

        with pytest.raises(PlatformAPIError):
            await task


class TestWebClient:
    """Tests for the lazily created Web API client."""

    def test_client_built_from_bot_token(self, mock_log: MagicMock) -> None:
        config = build_config(with_bot_token("xoxb-FAKE"))
        operations = SlackOperations(config, mock_log)

        with patch("slack_bot.core.operations.AsyncWebClient") as client_class:
            client = operations.web_client
            assert operations.web_client is client

        client_class.assert_called_once()
        assert client_class.call_args.kwargs["token"] == "xoxb-FAKE"

    def test_injected_client_used(self, bot_config: BotConfig, mock_log: MagicMock) -> None:
        injected = MagicMock(auth_test=AsyncMock())
        operations = SlackOperations(bot_config, mock_log, web_client=injected)
        assert operations.web_client is injected
