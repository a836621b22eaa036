"""Process-wide registry of live connections.

The registry map is owned by a single asyncio task. Every operation, reads
included, is sent to that task as a command and answered through a future,
so registrations, unregistrations and deliveries never interleave.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .connection import Connection
from .router import RoutingInstruction


logger = logging.getLogger("app.realtime.hub")


class HubNotRunningError(RuntimeError):
    pass


class _Op(str, Enum):
    REGISTER = "register"
    UNREGISTER = "unregister"
    ROUTE = "route"
    IS_CONNECTED = "is_connected"
    COUNT = "count"
    STOP = "stop"


@dataclass
class _Command:
    op: _Op
    arg: Any
    reply: asyncio.Future = field(repr=False)


class Hub:
    """Registry of at most one live Connection per user."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._inbox: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._handlers = {
            _Op.REGISTER: self._register,
            _Op.UNREGISTER: self._unregister,
            _Op.ROUTE: self._route,
            _Op.IS_CONNECTED: self._is_connected,
            _Op.COUNT: self._count,
            _Op.STOP: self._close_all,
        }

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the control loop on the running event loop."""
        if self.running:
            return
        self._connections = {}
        self._inbox = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="hub-control-loop")

    async def stop(self) -> None:
        """Close every registered connection and stop the control loop."""
        if not self.running:
            return
        task = self._task
        await self._submit(_Op.STOP)
        await task

    async def register(self, connection: Connection) -> None:
        await self._submit(_Op.REGISTER, connection)

    async def unregister(self, connection: Connection) -> bool:
        """Returns True if ``connection`` was the registered one and got removed."""
        return await self._submit(_Op.UNREGISTER, connection)

    async def route(self, instruction: RoutingInstruction) -> int:
        """Returns how many recipients had the frame queued."""
        return await self._submit(_Op.ROUTE, instruction)

    async def is_connected(self, user_id: str) -> bool:
        return await self._submit(_Op.IS_CONNECTED, user_id)

    async def connection_count(self) -> int:
        return await self._submit(_Op.COUNT)

    async def _submit(self, op: _Op, arg: Any = None) -> Any:
        if not self.running or self._inbox is None:
            raise HubNotRunningError("Hub control loop is not running")
        reply = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait(_Command(op, arg, reply))
        return await reply

    async def _run(self) -> None:
        inbox = self._inbox
        logger.info("Hub control loop started")
        while True:
            command = await inbox.get()
            try:
                result = self._handlers[command.op](command.arg)
            except Exception as e:
                logger.error("Hub command %s failed: %s", command.op.value, e, exc_info=True)
                if not command.reply.done():
                    command.reply.set_exception(e)
            else:
                if not command.reply.done():
                    command.reply.set_result(result)
            if command.op is _Op.STOP:
                break

        # Anything submitted after STOP will never be served
        while not inbox.empty():
            command = inbox.get_nowait()
            if not command.reply.done():
                command.reply.set_exception(HubNotRunningError("Hub stopped"))
        self._inbox = None
        logger.info("Hub control loop stopped")

    def _register(self, connection: Connection) -> None:
        previous = self._connections.get(connection.identity)
        if previous is not None and previous is not connection:
            previous.close_outbound()
            logger.info("Displaced previous session: user_id=%s", connection.identity)
        self._connections[connection.identity] = connection
        logger.info(
            "Connection registered: user_id=%s, total_connections=%d",
            connection.identity,
            len(self._connections),
        )

    def _unregister(self, connection: Connection) -> bool:
        removed = False
        if self._connections.get(connection.identity) is connection:
            del self._connections[connection.identity]
            removed = True
            logger.info(
                "Connection unregistered: user_id=%s, total_connections=%d",
                connection.identity,
                len(self._connections),
            )
        connection.close_outbound()
        return removed

    def _route(self, instruction: RoutingInstruction) -> int:
        delivered = 0
        for user_id in instruction.recipients:
            connection = self._connections.get(user_id)
            if connection is None:
                continue
            if connection.offer(instruction.payload):
                delivered += 1
            else:
                logger.warning(
                    "Dropped frame for user_id=%s: outbound queue full or closed",
                    user_id,
                )
        return delivered

    def _is_connected(self, user_id: str) -> bool:
        return user_id in self._connections

    def _count(self, _: Any = None) -> int:
        return len(self._connections)

    def _close_all(self, _: Any = None) -> None:
        for connection in self._connections.values():
            connection.close_outbound()
        self._connections.clear()


# Global hub instance, started by the application lifespan
hub = Hub()
