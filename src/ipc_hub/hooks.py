"""Observability hooks for the hubs.

Hooks see every message passing through a hub but cannot change it.
A hook that raises is logged and ignored; dispatch always continues.

Coordinator:
- on_receive: a Call arrived, before the handler is looked up
- on_reply: a Reply is about to be sent back
- on_send: a Broadcast is about to be sent to a peer

Worker:
- on_send: a Call is about to be sent
- on_receive: a Broadcast arrived, before listeners run
- on_reply: a Reply arrived, before the pending call is settled
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .protocol.messages import Broadcast, Call, Reply

logger = logging.getLogger(__name__)

MessageHook = Callable[[Any], None]


@dataclass
class HubHooks:
    """Optional instrumentation callbacks, each taking the message."""

    on_receive: MessageHook | None = None
    on_reply: MessageHook | None = None
    on_send: MessageHook | None = None

    def fire(self, hook_name: str, message: Call | Reply | Broadcast) -> None:
        """Invoke one hook, swallowing and logging its errors."""
        hook = getattr(self, hook_name)
        if hook is None:
            return
        try:
            hook(message)
        except Exception:
            logger.exception(f"Hook {hook_name} failed for '{message.name}'")
