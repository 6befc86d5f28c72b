from typing import Any


class HandlerRegistrationError(BaseException):
    """
    Raised when a handler cannot be registered on a DispatchMux.

    These errors describe incorrect wiring of the program, never a runtime
    condition, so they derive from BaseException in the same way SystemExit
    does: an ordinary ``except Exception`` block will not swallow them and an
    uncaught one terminates the process.
    """

    def __init__(self, handler: Any, message: str) -> None:
        super().__init__(f"msgmux: {message}")
        self.handler = handler


class NotCallable(HandlerRegistrationError):
    pass


class BadArity(HandlerRegistrationError):
    pass


class NotARecord(HandlerRegistrationError):
    def __init__(self, handler: Any, message: str, position: int) -> None:
        super().__init__(handler, message)
        self.position = position


class NotACancellationContext(HandlerRegistrationError):
    pass


class BadReturnArity(HandlerRegistrationError):
    pass


class NotAnError(HandlerRegistrationError):
    pass


class DuplicateHandler(HandlerRegistrationError):
    def __init__(self, handler: Any, message_type: type) -> None:
        super().__init__(
            handler,
            f"handler for message {message_type.__name__} already registered"
        )
        self.message_type = message_type


class DispatchError(Exception):
    """Base class of the recoverable errors raised while dispatching."""


class InvalidMessageShape(DispatchError, TypeError):
    def __init__(self, message_type: type) -> None:
        super().__init__(
            f"msgmux: msg should be a record type (got: {message_type.__name__})"
        )
        self.message_type = message_type


class NoHandlerRegistered(DispatchError, LookupError):
    def __init__(self, message_type: type) -> None:
        super().__init__(
            f"msgmux: no handler registered for message {message_type.__name__}"
        )
        self.message_type = message_type


class ContextError(Exception):
    pass


class ContextCancelled(ContextError):
    def __init__(self) -> None:
        super().__init__("context cancelled")


class ContextDeadlineExceeded(ContextError, TimeoutError):
    def __init__(self) -> None:
        super().__init__("context deadline exceeded")
