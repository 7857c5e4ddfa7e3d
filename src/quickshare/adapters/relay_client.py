"""SSH client used to reach the tunnel relay."""

from dataclasses import dataclass
from typing import Protocol

import asyncssh


class RelayChannel(Protocol):
    """Text channel carrying relay output."""

    async def readline(self) -> str:
        """Return the next line, or an empty string at end of input."""

    def close(self) -> None:
        """Close the channel."""


class RelayConnection(Protocol):
    """Established SSH connection to the relay."""

    async def forward_remote_port(
        self, bind_host: str, listen_port: int, dest_host: str, dest_port: int
    ) -> None:
        """Ask the relay to forward a public port back to a local port."""

    async def open_shell(self) -> RelayChannel:
        """Open an interactive session without a terminal."""

    def close(self) -> None:
        """Close the connection and everything multiplexed on it."""

    async def wait_closed(self) -> None:
        """Wait until the connection is fully closed."""


class RelayClient(Protocol):
    """Factory for relay connections."""

    async def connect(
        self, host: str, port: int, username: str, timeout: float
    ) -> RelayConnection:
        """Open and authenticate a connection to the relay."""


@dataclass
class AsyncsshRelayChannel(RelayChannel):
    """Relay channel backed by an asyncssh client process."""

    process: asyncssh.SSHClientProcess

    async def readline(self) -> str:
        return await self.process.stdout.readline()

    def close(self) -> None:
        self.process.close()


@dataclass
class AsyncsshRelayConnection(RelayConnection):
    """Relay connection backed by asyncssh."""

    connection: asyncssh.SSHClientConnection
    listener: asyncssh.SSHListener | None = None

    async def forward_remote_port(
        self, bind_host: str, listen_port: int, dest_host: str, dest_port: int
    ) -> None:
        self.listener = await self.connection.forward_remote_port(
            bind_host, listen_port, dest_host, dest_port
        )

    async def open_shell(self) -> RelayChannel:
        process = await self.connection.create_process(
            term_type=None,
            request_pty=False,
            encoding="utf-8",
            errors="replace",
        )
        return AsyncsshRelayChannel(process=process)

    def close(self) -> None:
        if self.listener is not None:
            self.listener.close()
            self.listener = None
        self.connection.close()

    async def wait_closed(self) -> None:
        await self.connection.wait_closed()


@dataclass
class AsyncsshRelayClient(RelayClient):
    """Relay client using asyncssh.

    Host key verification is disabled: the relay is a throwaway public host
    and the anonymous user has no key material to pin against.
    """

    keepalive_interval: float = 15.0
    keepalive_count_max: int = 3

    async def connect(
        self, host: str, port: int, username: str, timeout: float
    ) -> RelayConnection:
        connection = await asyncssh.connect(
            host,
            port=port,
            username=username,
            password="",
            client_keys=None,
            agent_path=None,
            known_hosts=None,
            connect_timeout=timeout,
            login_timeout=timeout,
            keepalive_interval=self.keepalive_interval,
            keepalive_count_max=self.keepalive_count_max,
        )
        return AsyncsshRelayConnection(connection=connection)
