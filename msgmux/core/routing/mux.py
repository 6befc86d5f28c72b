import enum
import logging
from typing import Any, Callable, TypeVar

from msgmux.core.context import Context, background
from msgmux.core.errors import (
    DuplicateHandler,
    HandlerRegistrationError,
    InvalidMessageShape,
    NoHandlerRegistered,
)
from msgmux.core.models.message import Message, is_record_type, type_name
from msgmux.core.routing.invoker import HandlerSpec
from msgmux.core.routing.validator import validate_handler


F = TypeVar("F", bound=Callable[..., Any])


class EmptyRegistryPolicy(str, enum.Enum):
    SUCCEED = "succeed"
    """Dispatching before any handler was registered is a silent no-op."""

    FAIL = "fail"
    """Dispatching before any handler was registered raises NoHandlerRegistered."""


class DispatchMux:
    """
    Routes message records to handlers by their concrete type.

    Each record type has at most one handler, registered with `handle()`
    either directly or as a decorator:

        mux = DispatchMux()

        @mux.handle
        def on_cancel(msg: CancelOrder) -> None:
            ...

        @mux.handle
        def on_completed(ctx: Context, msg: OrderCompleted) -> Exception | None:
            ...

        mux.dispatch(CancelOrder(order_id="order-123", reason="x"))

    Registration mistakes (bad handler shape, duplicate type) raise a
    HandlerRegistrationError, which derives from BaseException and is meant
    to stop the program. Dispatch failures raise ordinary exceptions:
    InvalidMessageShape, NoHandlerRegistered, or whatever the handler
    raised or returned, unchanged.

    The handler table stays None until the first successful registration.
    Under the default SUCCEED policy, dispatching into a mux that never had a
    handler succeeds without doing anything.

    The mux does no locking. Register handlers before dispatching from
    several threads, or guard both with a lock of your own.
    """

    def __init__(
        self,
        *,
        empty_registry: EmptyRegistryPolicy = EmptyRegistryPolicy.SUCCEED
    ) -> None:
        self._handlers: dict[type, HandlerSpec] | None = None
        self._empty_registry = EmptyRegistryPolicy(empty_registry)
        self._logger = logging.getLogger("core.routing.mux")

    @property
    def empty_registry(self) -> EmptyRegistryPolicy:
        return self._empty_registry

    def handle(self, fn: F) -> F:
        try:
            spec = validate_handler(fn)
            if self._handlers is not None and spec.message_type in self._handlers:
                raise DuplicateHandler(fn, spec.message_type)
        except HandlerRegistrationError as ex:
            self._logger.critical(f"Rejected handler {fn!r}: {ex}")
            raise

        if self._handlers is None:
            self._handlers = {}

        self._handlers[spec.message_type] = spec
        self._logger.debug(f"Registered handler for {type_name(spec.message_type)}")
        return fn

    def lookup(self, message_type: type) -> HandlerSpec | None:
        if self._handlers is None:
            return None
        return self._handlers.get(message_type)

    def handlers(self) -> dict[type, HandlerSpec]:
        return dict(self._handlers or {})

    def dispatch_context(self, ctx: Context, msg: Message) -> None:
        message_type = type(msg)
        if not is_record_type(message_type):
            raise InvalidMessageShape(message_type)

        if self._handlers is None:
            if self._empty_registry is EmptyRegistryPolicy.FAIL:
                raise NoHandlerRegistered(message_type)
            self._logger.debug(f"No handlers registered, dropping {type_name(message_type)}")
            return None

        spec = self._handlers.get(message_type)
        if spec is None:
            raise NoHandlerRegistered(message_type)

        self._logger.debug(f"Dispatching {type_name(message_type)}")
        spec.invoke(ctx, msg)
        return None

    def dispatch(self, msg: Message) -> None:
        return self.dispatch_context(background(), msg)


def new_dispatch_mux(
    *,
    empty_registry: EmptyRegistryPolicy = EmptyRegistryPolicy.SUCCEED
) -> DispatchMux:
    return DispatchMux(empty_registry=empty_registry)
