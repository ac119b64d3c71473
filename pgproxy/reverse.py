"""
Reverse call channel.

Procedures created with exposed names publish a notification instead of
running the exposed function. This module listens for those notifications and
dispatches them to the local functions.

Reverse calls are one-way messages: the server never receives a return value,
results of the local functions are discarded, and delivery is neither ordered
nor guaranteed.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, Set

from pgproxy.base import MalformedNotificationError, RemoteClient
from pgproxy.codec import decode_notification
from pgproxy.constants import NOTIFY_CHANNEL
from pgproxy.models import ReverseCallPayload
from pgproxy.utils.logging import get_logger, logging_context

logger = get_logger(__name__)


class ReverseChannel:
    """Dispatches reverse call notifications to exposed local functions."""

    def __init__(
        self,
        client: RemoteClient,
        expose: Dict[str, Callable[..., Any]],
        channel: str = NOTIFY_CHANNEL
    ):
        """Initialize the reverse channel.

        Args:
            client: The remote client delivering notifications
            expose: Mapping of name to the local function it invokes
            channel: The notification channel to listen on
        """
        self.client = client
        self.expose = dict(expose)
        self.channel = channel
        self.listening = False
        self.tasks: Set[asyncio.Task] = set()
        self.metrics = {
            "received": 0,
            "dispatched": 0,
            "ignored": 0,
            "dropped": 0,
            "failed": 0
        }

    async def start(self) -> None:
        """Start listening for reverse calls."""
        if self.listening:
            return

        await self.client.subscribe(self.channel, self.handle_notification)
        self.listening = True
        logger.info(f"Listening for reverse calls on channel {self.channel}")

    async def stop(self) -> None:
        """Stop listening and cancel in-flight dispatches without awaiting them.

        Safe to call on a channel that is not listening.
        """
        if not self.listening:
            return

        self.listening = False
        for task in list(self.tasks):
            task.cancel()

        await self.client.unsubscribe(self.channel, self.handle_notification)
        logger.info(f"Stopped listening for reverse calls on channel {self.channel}")

    def handle_notification(self, topic: str, payload: str) -> None:
        """Handle one inbound notification."""
        if not self.listening or topic != self.channel:
            return

        self.metrics["received"] += 1

        try:
            call = decode_notification(payload)
        except MalformedNotificationError as e:
            self.metrics["dropped"] += 1
            logger.debug(f"Dropped malformed reverse call notification: {e}")
            return

        fn = self.expose.get(call.fn)
        if not call.is_call or fn is None:
            self.metrics["ignored"] += 1
            logger.debug(f"Ignored reverse call notification for {call.fn} with action {call.action}")
            return

        task = asyncio.get_running_loop().create_task(self._dispatch(fn, call))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def _dispatch(self, fn: Callable[..., Any], call: ReverseCallPayload) -> None:
        with logging_context(reverse_call=call.fn):
            try:
                result = fn(*call.params)
                if inspect.isawaitable(result):
                    await result
                self.metrics["dispatched"] += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # There is no response path to report the failure on
                self.metrics["failed"] += 1
                logger.error(f"Error in reverse call to {call.fn}: {e}", exc_info=True)
