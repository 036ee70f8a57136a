"""
Byte stream establishment for a resolved profile.

Provides:
- Stream: Duplex byte stream backed by a connected socket
- StreamProvider: Interface for opening direct and proxied streams
- AsyncioStreamProvider: Default provider built on asyncio
- establish: Open the stream a profile describes

If the profile has a ProxyCommand, it is expanded and run with its stdio
as the stream. Otherwise the host name and port are resolved and the
first address is connected to directly.
"""
from __future__ import annotations

import asyncio
import logging
import socket
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, Sequence, Tuple

from ssh_profile.errors import ConfigIOError, ErrorContext, NotResolvable
from ssh_profile.proxy import ProxyCommandError, ProxyCommandProcess
from ssh_profile.tokens import expand

if TYPE_CHECKING:
    from ssh_profile.config import Profile

log = logging.getLogger("ssh_profile.stream")

Address = Tuple[Any, ...]
Resolver = Callable[[str, int], Awaitable[Sequence[Address]]]


class Stream:
    """
    Duplex byte stream for an SSH transport.

    Wraps a connected, non-blocking socket. For proxied streams the
    ProxyCommand process is owned by the stream and stopped on close().

    Usage:
        async with await profile.stream() as stream:
            reader, writer = await stream.open_streams()
    """

    def __init__(
        self,
        sock: socket.socket,
        proxy: ProxyCommandProcess | None = None,
    ) -> None:
        self._sock = sock
        self._proxy = proxy
        self._writer: asyncio.StreamWriter | None = None
        self._closed = False

    @property
    def proxy(self) -> ProxyCommandProcess | None:
        """Return the ProxyCommand process, if this stream is proxied."""
        return self._proxy

    @property
    def closed(self) -> bool:
        """Return True once close() has been called."""
        return self._closed

    def get_socket(self) -> socket.socket:
        """
        Get the underlying socket (e.g. for asyncssh.connect(sock=...)).
        """
        if self._closed:
            raise RuntimeError("Stream is closed")
        return self._sock

    async def open_streams(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Wrap the socket in an asyncio reader/writer pair."""
        if self._writer is not None:
            raise RuntimeError("Streams already opened")
        reader, writer = await asyncio.open_connection(sock=self.get_socket())
        self._writer = writer
        return reader, writer

    async def close(self) -> None:
        """Close the stream and release the socket or process."""
        if self._closed:
            return
        self._closed = True

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (OSError, ConnectionError) as e:
                log.debug("Error closing stream writer: %s", e)
            self._writer = None

        if self._proxy is not None:
            await self._proxy.close()
        else:
            try:
                self._sock.close()
            except OSError as e:
                log.debug("Error closing socket: %s", e)

    async def __aenter__(self) -> "Stream":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class StreamProvider(Protocol):
    """Opens the streams that establish() delegates to."""

    async def open_direct(self, address: Address) -> Stream:
        """Connect to a resolved socket address."""
        ...

    async def spawn_proxy(self, command: str, args: Sequence[str]) -> Stream:
        """Run a proxy command and expose its stdio as a stream."""
        ...


class AsyncioStreamProvider:
    """Stream provider using asyncio sockets and subprocesses."""

    async def open_direct(self, address: Address) -> Stream:
        loop = asyncio.get_running_loop()
        # IPv6 socket addresses carry flowinfo and scope id
        family = socket.AF_INET6 if len(address) == 4 else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setblocking(False)
        try:
            await loop.sock_connect(sock, address)
        except BaseException:
            sock.close()
            raise
        log.debug("Connected to %s", address)
        return Stream(sock)

    async def spawn_proxy(self, command: str, args: Sequence[str]) -> Stream:
        proxy = ProxyCommandProcess(command, args)
        await proxy.start()
        return Stream(proxy.get_socket(), proxy=proxy)


async def default_resolver(host: str, port: int) -> list[Address]:
    """Resolve host and port to TCP socket addresses."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [info[4] for info in infos]


async def establish(
    profile: "Profile",
    provider: StreamProvider | None = None,
    resolver: Resolver | None = None,
) -> Stream:
    """
    Establish the byte stream described by a profile.

    Args:
        profile: Resolved profile
        provider: Opens the stream (default: AsyncioStreamProvider)
        resolver: Resolves host and port (default: getaddrinfo)

    Returns:
        Connected Stream

    Raises:
        NotResolvable: If the host name does not resolve
        ConfigIOError: If the connection or proxy command fails
    """
    if provider is None:
        provider = AsyncioStreamProvider()
    if resolver is None:
        resolver = default_resolver

    if profile.proxy_command is not None:
        command_line = expand(profile.proxy_command, profile)
        # No shell quoting: split on single spaces only
        command, *args = command_line.split(" ")
        log.debug("Spawning ProxyCommand %r", command_line)
        try:
            return await provider.spawn_proxy(command, args)
        except ProxyCommandError as e:
            extra: dict[str, Any] = {"command": command_line}
            if e.exit_code is not None:
                extra["exit_code"] = e.exit_code
            if e.stderr:
                extra["stderr"] = e.stderr
            raise ConfigIOError(
                str(e),
                context=ErrorContext(
                    host=profile.host_name, port=profile.port, extra=extra
                ),
            ) from e
        except OSError as e:
            raise ConfigIOError.from_os_error(
                e,
                context=ErrorContext(
                    host=profile.host_name,
                    port=profile.port,
                    extra={"command": command_line},
                ),
            ) from e

    log.debug("Resolving %s:%d", profile.host_name, profile.port)
    try:
        addresses = await resolver(profile.host_name, profile.port)
    except (OSError, UnicodeError) as e:
        raise NotResolvable(
            context=ErrorContext(
                host=profile.host_name, port=profile.port, original_error=str(e)
            )
        ) from e

    if not addresses:
        raise NotResolvable(
            context=ErrorContext(host=profile.host_name, port=profile.port)
        )

    try:
        return await provider.open_direct(addresses[0])
    except OSError as e:
        raise ConfigIOError.from_os_error(
            e, context=ErrorContext(host=profile.host_name, port=profile.port)
        ) from e
