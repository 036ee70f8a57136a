"""
ProxyCommand process bridged to a socket.

Provides:
- ProxyCommandProcess: Runs a proxy command and exposes its stdin/stdout
  as one end of a socket pair

The command is executed directly, without a shell: the expanded
ProxyCommand is split on single spaces into program and arguments.

Examples:
    ProxyCommand nc -X 5 -x socks-proxy:1080 %h %p
    ProxyCommand ssh -W %h:%p bastion
"""
from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any, Sequence

log = logging.getLogger("ssh_profile.proxy")

_BUFFER_SIZE = 65536


class ProxyCommandError(Exception):
    """Error running ProxyCommand."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class ProxyCommandProcess:
    """
    Manages a ProxyCommand subprocess used as a byte stream.

    A socket pair is created; the local end is bridged to the subprocess
    stdin/stdout and the remote end is handed to the caller.

    Usage:
        async with ProxyCommandProcess("nc", ["bastion", "22"]) as proxy:
            sock = proxy.get_socket()
    """

    def __init__(self, command: str, args: Sequence[str] = ()) -> None:
        """
        Args:
            command: Program to run (tokens already expanded)
            args: Program arguments
        """
        if not command or not command.strip():
            raise ProxyCommandError("Empty ProxyCommand", command=command)

        self._command = command
        self._args = list(args)
        self._process: asyncio.subprocess.Process | None = None
        self._local_sock: socket.socket | None = None
        self._remote_sock: socket.socket | None = None
        self._bridge_task: asyncio.Task | None = None
        self._closed = False

    @property
    def command(self) -> str:
        """Return the program being run."""
        return self._command

    @property
    def args(self) -> list[str]:
        """Return the program arguments."""
        return list(self._args)

    @property
    def command_line(self) -> str:
        """Return program and arguments joined for display."""
        return " ".join([self._command, *self._args])

    async def start(self) -> None:
        """Start the ProxyCommand subprocess."""
        assert not self._closed, (
            f"Cannot start ProxyCommand after close() has been called. "
            f"Command: {self.command_line}"
        )

        if self._process is not None:
            raise RuntimeError("ProxyCommand already started")

        # On Unix: AF_UNIX. On Windows: socketpair() needs AF_INET.
        if hasattr(socket, "AF_UNIX"):
            self._local_sock, self._remote_sock = socket.socketpair(
                socket.AF_UNIX, socket.SOCK_STREAM
            )
        else:
            self._local_sock, self._remote_sock = socket.socketpair(
                socket.AF_INET, socket.SOCK_STREAM
            )

        self._local_sock.setblocking(False)
        self._remote_sock.setblocking(False)

        try:
            self._process = await asyncio.create_subprocess_exec(
                self._command,
                *self._args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._cleanup_sockets()
            raise ProxyCommandError(
                f"Failed to start ProxyCommand: {e}",
                command=self.command_line,
            ) from e

        log.debug("Started ProxyCommand %r (pid %s)", self.command_line, self._process.pid)

        # Give an immediately failing command a moment to exit
        await asyncio.sleep(0.05)

        if self._process.returncode is not None:
            stderr = ""
            if self._process.stderr:
                try:
                    stderr = (await self._process.stderr.read()).decode(
                        "utf-8", errors="replace"
                    )
                except OSError as e:
                    stderr = f"<stderr read failed: {e}>"
                    log.debug("Failed to read stderr from ProxyCommand: %s", e)
            self._cleanup_sockets()
            raise ProxyCommandError(
                f"ProxyCommand exited immediately with code {self._process.returncode}",
                command=self.command_line,
                exit_code=self._process.returncode,
                stderr=stderr,
            )

        self._bridge_task = asyncio.create_task(self._bridge())

        assert self._process is not None, (
            "Postcondition violated: _process is not None after start()"
        )
        assert self._remote_sock is not None, (
            "Postcondition violated: _remote_sock is not None after start()"
        )

    async def _bridge(self) -> None:
        """Bridge data between the socket pair and subprocess stdin/stdout."""
        assert self._process is not None, (
            "_bridge called but _process is None, bridge requires a running process"
        )
        assert self._local_sock is not None, (
            "_bridge called but _local_sock is None, bridge requires a connected socket"
        )
        assert self._process.stdin is not None, (
            "Process stdin is None, subprocess was not created with stdin=PIPE"
        )
        assert self._process.stdout is not None, (
            "Process stdout is None, subprocess was not created with stdout=PIPE"
        )

        loop = asyncio.get_running_loop()
        process = self._process
        local_sock = self._local_sock

        async def socket_to_subprocess() -> None:
            """Forward data from socket to subprocess stdin."""
            while not self._closed:
                try:
                    data = await loop.sock_recv(local_sock, _BUFFER_SIZE)
                    if not data:
                        break
                    process.stdin.write(data)
                    await process.stdin.drain()
                except (OSError, asyncio.CancelledError, ConnectionError):
                    break

            try:
                process.stdin.close()
            except OSError as e:
                log.debug("Error closing subprocess stdin: %s", e)

        async def subprocess_to_socket() -> None:
            """Forward data from subprocess stdout to socket."""
            while not self._closed:
                try:
                    data = await process.stdout.read(_BUFFER_SIZE)
                    if not data:
                        break
                    await loop.sock_sendall(local_sock, data)
                except (OSError, asyncio.CancelledError, ConnectionError):
                    break

            # Signal EOF to the reader of the remote socket
            try:
                local_sock.shutdown(socket.SHUT_WR)
            except OSError as e:
                log.debug("Error shutting down local socket: %s", e)

        async def monitor_process() -> None:
            """Monitor subprocess for unexpected exit."""
            await process.wait()
            log.debug(
                "ProxyCommand %r exited with code %s",
                self.command_line, process.returncode,
            )

        try:
            await asyncio.gather(
                socket_to_subprocess(),
                subprocess_to_socket(),
                monitor_process(),
            )
        except (OSError, ConnectionError, asyncio.CancelledError) as e:
            log.debug("Bridge terminated: %s", e)

    def get_socket(self) -> socket.socket:
        """
        Get the caller's end of the socket pair.

        Returns:
            Socket connected to the ProxyCommand's stdin/stdout
        """
        if self._remote_sock is None:
            raise RuntimeError("ProxyCommand not started")
        return self._remote_sock

    def _cleanup_sockets(self) -> None:
        """Clean up socket resources."""
        if self._local_sock is not None:
            try:
                self._local_sock.close()
            except OSError as e:
                log.debug("Error closing local socket: %s", e)
            self._local_sock = None

        if self._remote_sock is not None:
            try:
                self._remote_sock.close()
            except OSError as e:
                log.debug("Error closing remote socket: %s", e)
            self._remote_sock = None

    async def close(self) -> None:
        """Close the ProxyCommand subprocess and clean up."""
        if self._closed:
            return

        self._closed = True

        if self._bridge_task is not None:
            self._bridge_task.cancel()
            try:
                await self._bridge_task
            except asyncio.CancelledError:
                pass
            self._bridge_task = None

        if self._process is not None:
            try:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=2.0)
                except asyncio.TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            except (OSError, ProcessLookupError) as e:
                log.debug("Error terminating ProxyCommand process: %s", e)
            self._process = None

        self._cleanup_sockets()

    async def __aenter__(self) -> "ProxyCommandProcess":
        """Start the ProxyCommand process."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Close the ProxyCommand process."""
        await self.close()
