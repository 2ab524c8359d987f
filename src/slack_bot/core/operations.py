"""Outbound Slack Web API operations.

SlackOperations owns the Web API client and the identity resolved at
startup. Every call goes through ``_call``, which routes Slack errors
through the classifier so callers can rely on PlatformAPIError.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.web.async_slack_response import AsyncSlackResponse
from structlog.typing import FilteringBoundLogger

from slack_bot.config.schema import BotConfig
from slack_bot.core.errors import ConfigurationError, NotAuthenticatedError, classify_api_error
from slack_bot.models.events import Identity, MessageEvent
from slack_bot.utils.logging import library_logger

# conversations.list page size used for lookups and auto-join
CONVERSATIONS_PAGE_SIZE = 100


class SlackOperations:
    """Stateless Web API calls on behalf of the bot.

    Required scopes per operation are noted in each docstring.
    """

    def __init__(
        self,
        config: BotConfig,
        log: FilteringBoundLogger,
        web_client: AsyncWebClient | None = None,
    ) -> None:
        self._config = config
        self._log = log
        self._web_client = web_client
        self._identity: Identity | None = None
        self._team: dict[str, Any] | None = None

    @property
    def config(self) -> BotConfig:
        return self._config

    @property
    def log(self) -> FilteringBoundLogger:
        return self._log

    @property
    def web_client(self) -> AsyncWebClient:
        """Return the Web API client, creating it on first use."""
        if self._web_client is None:
            self._web_client = AsyncWebClient(
                token=self._config.bot_token.get_secret_value(),
                logger=library_logger(
                    f"slack_bot.{self._config.display_name}.api",
                    self._log,
                    prefix="api: ",
                    debug=self._config.debug,
                ),
            )
        return self._web_client

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def bot_id(self) -> str:
        return self._identity.bot_id if self._identity else ""

    @property
    def user_id(self) -> str:
        return self._identity.user_id if self._identity else ""

    @property
    def username(self) -> str:
        return self._config.username

    @property
    def icon_emoji(self) -> str:
        return self._config.icon_emoji

    async def authenticate(self) -> Identity:
        """Resolve the bot identity with auth.test.

        Returns:
            The cached Identity

        Raises:
            ConfigurationError: If either token is missing
            PlatformAPIError: If Slack rejects the credentials
        """
        if not self._config.bot_token or not self._config.app_level_token:
            raise ConfigurationError("bot_token and app_level_token are both required")

        response = await self._call("auth.test", self.web_client.auth_test, require_identity=False)
        identity = Identity(
            bot_id=response.get("bot_id") or "",
            user_id=response.get("user_id") or "",
            team_id=response.get("team_id") or "",
            user=response.get("user") or "",
            team=response.get("team") or "",
            url=response.get("url") or "",
        )
        self._identity = identity

        if self._config.debug:
            self._log = self._log.bind(
                slack_auth_info={
                    "user": {
                        "name": identity.user,
                        "user_id": identity.user_id,
                        "bot_id": identity.bot_id,
                    },
                    "team": {
                        "team_id": identity.team_id,
                        "name": identity.team,
                        "url": identity.url,
                    },
                }
            )
        self._log.info(
            "authenticated",
            user_id=identity.user_id,
            bot_id=identity.bot_id,
            team_id=identity.team_id,
        )
        return identity

    async def post_message(self, channel: str, text: str = "", **kwargs: Any) -> str:
        """Post a message, applying the configured username/icon overrides.

        Required scopes: `chat:write` (`chat:write.customize` for overrides)

        Args:
            channel: Channel ID
            text: Message text (fallback text when blocks are given)
            **kwargs: Extra chat.postMessage arguments (blocks, thread_ts, ...)

        Returns:
            Timestamp (ts) of the posted message
        """
        response = await self._call(
            "chat.postMessage",
            self.web_client.chat_postMessage,
            channel=channel,
            text=text,
            **self._with_overrides(kwargs),
        )
        return str(response.get("ts") or "")

    async def post_ephemeral_message(
        self, channel: str, user: str, text: str = "", **kwargs: Any
    ) -> str:
        """Post a message visible only to ``user``.

        Required scopes: `chat:write`

        Returns:
            Timestamp (message_ts) of the ephemeral message
        """
        response = await self._call(
            "chat.postEphemeral",
            self.web_client.chat_postEphemeral,
            channel=channel,
            user=user,
            text=text,
            **self._with_overrides(kwargs),
        )
        return str(response.get("message_ts") or "")

    async def reply(self, message: MessageEvent, text: str = "", **kwargs: Any) -> str:
        """Reply in the thread of ``message`` (starting one if needed)."""
        kwargs.setdefault("thread_ts", message.thread_ts or message.ts)
        return await self.post_message(message.channel, text, **kwargs)

    async def add_reaction(self, channel: str, timestamp: str, name: str) -> None:
        """Add a reaction (emoji name without colons) to a message.

        Required scopes: `reactions:write`
        """
        await self._call(
            "reactions.add",
            self.web_client.reactions_add,
            channel=channel,
            timestamp=timestamp,
            name=name,
        )

    async def remove_reaction(self, channel: str, timestamp: str, name: str) -> None:
        """Remove a reaction from a message.

        Required scopes: `reactions:write`
        """
        await self._call(
            "reactions.remove",
            self.web_client.reactions_remove,
            channel=channel,
            timestamp=timestamp,
            name=name,
        )

    async def join_conversation(self, channel_id: str) -> dict[str, Any]:
        """Join a conversation.

        Required scopes: `channels:join`

        Returns:
            The joined channel object
        """
        response = await self._call(
            "conversations.join", self.web_client.conversations_join, channel=channel_id
        )
        return dict(response.get("channel") or {})

    async def leave_conversation(self, channel_id: str) -> None:
        """Leave a conversation.

        Required scopes: `channels:manage`, `groups:write`, `im:write`, `mpim:write`
        """
        await self._call(
            "conversations.leave", self.web_client.conversations_leave, channel=channel_id
        )

    async def list_conversations(
        self,
        exclude_archived: bool = True,
        limit: int = CONVERSATIONS_PAGE_SIZE,
        max_pages: int | None = None,
        **kwargs: Any,
    ) -> list[dict[str, Any]]:
        """Return conversations, following the pagination cursor.

        Required scopes: `channels:read`, `groups:read`, `im:read`, `mpim:read`

        Args:
            exclude_archived: Skip archived conversations
            limit: Page size
            max_pages: Stop after this many pages; None reads them all
            **kwargs: Extra conversations.list arguments (types, team_id, ...)
        """
        channels: list[dict[str, Any]] = []
        cursor = ""
        pages = 0
        while True:
            if cursor:
                kwargs["cursor"] = cursor
            response = await self._call(
                "conversations.list",
                self.web_client.conversations_list,
                exclude_archived=exclude_archived,
                limit=limit,
                **kwargs,
            )
            channels.extend(response.get("channels") or [])
            pages += 1
            cursor = (response.get("response_metadata") or {}).get("next_cursor") or ""
            if not cursor or (max_pages is not None and pages >= max_pages):
                return channels

    async def get_user_info(self, user_id: str) -> dict[str, Any]:
        """Look up a user.

        Required scopes: `users:read`
        """
        response = await self._call("users.info", self.web_client.users_info, user=user_id)
        return dict(response.get("user") or {})

    async def get_team_info(self) -> dict[str, Any]:
        """Look up the workspace, caching the first successful result.

        Required scopes: `team:read`
        """
        if self._team is not None:
            return self._team
        response = await self._call("team.info", self.web_client.team_info)
        self._team = dict(response.get("team") or {})
        return self._team

    def upload_file(self, **params: Any) -> asyncio.Task[dict[str, Any]]:
        """Start a files.upload v2 call in the background.

        Required scopes: `files:write`

        Args:
            **params: files_upload_v2 arguments (channel, file, content, filename, ...)

        Returns:
            A task resolving to the uploaded file summary, or raising
            PlatformAPIError
        """
        self._require_identity()
        return asyncio.create_task(self._upload(params), name="files_upload_v2")

    async def _upload(self, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._call("files.upload_v2", self.web_client.files_upload_v2, **params)
        file_summary = response.get("file")
        if not file_summary:
            files = response.get("files") or []
            file_summary = files[0] if files else {}
        return dict(file_summary)

    def _with_overrides(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Add username/icon_emoji unless unset or already given."""
        if self._config.username:
            kwargs.setdefault("username", self._config.username)
        if self._config.icon_emoji:
            kwargs.setdefault("icon_emoji", self._config.icon_emoji)
        return kwargs

    def _require_identity(self) -> Identity:
        if self._identity is None:
            raise NotAuthenticatedError("authenticate() must succeed before calling Slack")
        return self._identity

    async def _call(
        self,
        operation: str,
        method: Callable[..., Awaitable[AsyncSlackResponse]],
        require_identity: bool = True,
        **kwargs: Any,
    ) -> AsyncSlackResponse:
        """Invoke a Web API method, classifying Slack errors.

        Raises:
            NotAuthenticatedError: If called before authenticate()
            PlatformAPIError: If Slack returned an error response
        """
        if require_identity:
            self._require_identity()
        try:
            return await method(**kwargs)
        except SlackApiError as e:
            raise classify_api_error(e, self._log, operation) from e
