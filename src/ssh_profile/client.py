"""
asyncssh client connections over a profile's stream.

Provides:
- build_connect_options: asyncssh.connect() keyword arguments for a profile
- ProfileConnection: An SSH connection plus the stream it runs over
- connect: Establish the stream and open the SSH connection

ProxyJump and AddKeysToAgent are carried on the profile but not acted on
here.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import asyncssh

from ssh_profile.stream import Stream, establish

if TYPE_CHECKING:
    from ssh_profile.config import Profile
    from ssh_profile.stream import Resolver, StreamProvider

log = logging.getLogger("ssh_profile.client")


def build_connect_options(profile: "Profile") -> dict[str, Any]:
    """
    Map a profile onto asyncssh.connect() keyword arguments.

    StrictHostKeyChecking no disables host key verification; otherwise a
    configured UserKnownHostsFile replaces asyncssh's default known_hosts.
    """
    options: dict[str, Any] = {
        "host": profile.host_name,
        "port": profile.port,
        "username": profile.user,
    }

    if profile.identity_file is not None:
        options["client_keys"] = [profile.identity_file]

    if not profile.strict_host_key_checking:
        options["known_hosts"] = None
    elif profile.user_known_hosts_file is not None:
        options["known_hosts"] = profile.user_known_hosts_file

    return options


class ProfileConnection:
    """
    SSH connection opened from a profile.

    Owns both the asyncssh connection and the underlying Stream, so a
    ProxyCommand process is stopped when the connection is closed.

    Usage:
        async with await connect(profile) as conn:
            result = await conn.run("uname -a")
    """

    def __init__(
        self,
        conn: asyncssh.SSHClientConnection,
        stream: Stream,
    ) -> None:
        self._conn = conn
        self._stream = stream

    @property
    def conn(self) -> asyncssh.SSHClientConnection:
        return self._conn

    @property
    def stream(self) -> Stream:
        return self._stream

    async def run(self, command: str, **kwargs: Any) -> asyncssh.SSHCompletedProcess:
        """Run a command on the remote host."""
        return await self._conn.run(command, **kwargs)

    async def close(self) -> None:
        """Close the SSH connection, then the stream."""
        self._conn.close()
        await self._conn.wait_closed()
        await self._stream.close()

    async def __aenter__(self) -> "ProfileConnection":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


async def connect(
    profile: "Profile",
    *,
    provider: "StreamProvider | None" = None,
    resolver: "Resolver | None" = None,
    **options: Any,
) -> ProfileConnection:
    """
    Open an SSH connection for a profile.

    Args:
        profile: Resolved profile
        provider: Stream provider passed to establish()
        resolver: Address resolver passed to establish()
        **options: Extra asyncssh.connect() arguments; these override
            the values derived from the profile

    Raises:
        NotResolvable, ConfigIOError: If the stream cannot be established
        asyncssh.Error: If the SSH handshake or authentication fails
    """
    stream = await establish(profile, provider=provider, resolver=resolver)

    connect_options = build_connect_options(profile)
    connect_options.update(options)
    connect_options["sock"] = stream.get_socket()

    log.debug(
        "Connecting as %s to %s:%d", profile.user, profile.host_name, profile.port
    )
    try:
        conn = await asyncssh.connect(**connect_options)
    except BaseException:
        await stream.close()
        raise

    return ProfileConnection(conn, stream)
