"""
Tests for opening asyncssh connections from a profile.

asyncssh.connect is patched; no SSH server is needed.
"""
from __future__ import annotations

from typing import Any, Sequence
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from ssh_profile.client import ProfileConnection, build_connect_options, connect
from ssh_profile.config import Profile
from ssh_profile.errors import NotResolvable


def make_profile(**kwargs: Any) -> Profile:
    fields: dict[str, Any] = {"user": "alice", "host_name": "example.com", "port": 2022}
    fields.update(kwargs)
    return Profile(**fields)


class FakeStream:
    """Stands in for a Stream."""

    def __init__(self) -> None:
        self.sock = object()
        self.close = AsyncMock()

    def get_socket(self) -> Any:
        return self.sock


class FakeProvider:
    def __init__(self) -> None:
        self.stream = FakeStream()

    async def open_direct(self, address: Any) -> Any:
        return self.stream

    async def spawn_proxy(self, command: str, args: Sequence[str]) -> Any:
        return self.stream


async def local_resolver(host: str, port: int) -> list[tuple[str, int]]:
    return [("192.0.2.1", port)]


class TestBuildConnectOptions:
    """Tests for build_connect_options()."""

    def test_basic_options(self) -> None:
        """Host, port and username come from the profile."""
        options = build_connect_options(make_profile())
        assert options == {"host": "example.com", "port": 2022, "username": "alice"}

    def test_identity_file(self) -> None:
        """IdentityFile becomes the only client key."""
        options = build_connect_options(make_profile(identity_file="/keys/id"))
        assert options["client_keys"] == ["/keys/id"]

    def test_strict_checking_off(self) -> None:
        """StrictHostKeyChecking no disables known_hosts verification."""
        options = build_connect_options(
            make_profile(
                strict_host_key_checking=False,
                user_known_hosts_file="/keys/known_hosts",
            )
        )
        assert options["known_hosts"] is None

    def test_user_known_hosts_file(self) -> None:
        """UserKnownHostsFile replaces the default known_hosts."""
        options = build_connect_options(
            make_profile(user_known_hosts_file="/keys/known_hosts")
        )
        assert options["known_hosts"] == "/keys/known_hosts"

    def test_default_known_hosts_untouched(self) -> None:
        """Without overrides asyncssh's default known_hosts is used."""
        assert "known_hosts" not in build_connect_options(make_profile())


class TestConnect:
    """Tests for connect()."""

    @pytest.mark.asyncio
    async def test_connects_over_stream(self) -> None:
        """asyncssh.connect gets the stream's socket and profile options."""
        provider = FakeProvider()
        fake_conn = MagicMock()

        with patch(
            "ssh_profile.client.asyncssh.connect",
            new=AsyncMock(return_value=fake_conn),
        ) as mock_connect:
            result = await connect(
                make_profile(), provider=provider, resolver=local_resolver
            )

        assert isinstance(result, ProfileConnection)
        assert result.conn is fake_conn
        assert result.stream is provider.stream
        mock_connect.assert_awaited_once_with(
            host="example.com",
            port=2022,
            username="alice",
            sock=provider.stream.sock,
        )

    @pytest.mark.asyncio
    async def test_caller_options_override(self) -> None:
        """Keyword options override values derived from the profile."""
        provider = FakeProvider()

        with patch(
            "ssh_profile.client.asyncssh.connect",
            new=AsyncMock(return_value=MagicMock()),
        ) as mock_connect:
            await connect(
                make_profile(),
                provider=provider,
                resolver=local_resolver,
                username="root",
                known_hosts=None,
            )

        kwargs = mock_connect.await_args.kwargs
        assert kwargs["username"] == "root"
        assert kwargs["known_hosts"] is None

    @pytest.mark.asyncio
    async def test_stream_closed_on_failure(self) -> None:
        """The stream is closed when the SSH handshake fails."""
        provider = FakeProvider()

        with patch(
            "ssh_profile.client.asyncssh.connect",
            new=AsyncMock(side_effect=asyncssh.PermissionDenied("denied")),
        ):
            with pytest.raises(asyncssh.PermissionDenied):
                await connect(make_profile(), provider=provider, resolver=local_resolver)

        provider.stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_errors_propagate(self) -> None:
        """Errors establishing the stream are raised before asyncssh is used."""

        async def resolver(host: str, port: int) -> list[Any]:
            return []

        with patch("ssh_profile.client.asyncssh.connect", new=AsyncMock()) as mock_connect:
            with pytest.raises(NotResolvable):
                await connect(make_profile(), provider=FakeProvider(), resolver=resolver)

        mock_connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_closes_connection_and_stream(self) -> None:
        """Closing a ProfileConnection closes both layers."""
        conn = MagicMock()
        conn.wait_closed = AsyncMock()
        stream = FakeStream()

        async with ProfileConnection(conn, stream):
            pass

        conn.close.assert_called_once()
        conn.wait_closed.assert_awaited_once()
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_delegates(self) -> None:
        """run() is forwarded to the asyncssh connection."""
        conn = MagicMock()
        conn.run = AsyncMock(return_value="done")

        result = await ProfileConnection(conn, FakeStream()).run("uname", check=True)

        assert result == "done"
        conn.run.assert_awaited_once_with("uname", check=True)
