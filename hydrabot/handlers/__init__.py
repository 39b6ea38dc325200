"""
Message handlers.

Every handler class listed in HANDLERS is offered each incoming message.
"""

from hydrabot.handlers.replay import ReplayHandler

HANDLERS = [ReplayHandler]

__all__ = ["HANDLERS", "ReplayHandler"]
