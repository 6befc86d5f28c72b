from dataclasses import dataclass
from typing import Any, Callable

from msgmux.core.context import Context
from msgmux.core.models.message import Message


def _unwrap(result: Any) -> None:
    # a returned exception is the handler's failure, raise the same object
    if isinstance(result, BaseException):
        raise result


@dataclass(frozen=True)
class UnaryHandler:
    """A handler registered in the ``fn(msg)`` form."""
    fn: Callable[[Message], Exception | None]
    message_type: type

    def invoke(self, ctx: Context, msg: Message) -> None:
        _unwrap(self.fn(msg))


@dataclass(frozen=True)
class ContextHandler:
    """A handler registered in the ``fn(ctx, msg)`` form."""
    fn: Callable[[Context, Message], Exception | None]
    message_type: type

    def invoke(self, ctx: Context, msg: Message) -> None:
        _unwrap(self.fn(ctx, msg))


HandlerSpec = UnaryHandler | ContextHandler
"""
Registry entry: a validated handler tagged with its call form and the
message type it accepts.
"""
