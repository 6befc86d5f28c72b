import functools
import inspect
import logging
import types
from typing import Any, Never, NoReturn, Union, get_args, get_origin

from msgmux.core.context import Context
from msgmux.core.errors import (
    BadArity,
    BadReturnArity,
    NotACancellationContext,
    NotARecord,
    NotAnError,
    NotCallable,
)
from msgmux.core.models.message import is_record_type, type_name
from msgmux.core.routing.invoker import ContextHandler, HandlerSpec, UnaryHandler


_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)

_logger = logging.getLogger("core.routing.validator")


def validate_handler(candidate: Any) -> HandlerSpec:
    """
    Check that ``candidate`` has one of the accepted handler shapes:

        def handler(msg: Record) -> None: ...
        def handler(ctx: Context, msg: Record) -> Exception | None: ...

    and return the registry entry describing it. The message type is taken
    from the annotation of the last parameter.

    Raises the HandlerRegistrationError subclass naming the first violated
    rule. Nothing is mutated, so a rejected candidate leaves no trace.
    """
    if not callable(candidate) or isinstance(candidate, type):
        raise NotCallable(
            candidate,
            f"fn MessageHandler is not a function (got: {type(candidate).__name__})"
        )

    signature = _signature(candidate)
    globalns = _globals(candidate)
    params = list(signature.parameters.values())

    if len(params) not in (1, 2) or any(p.kind not in _POSITIONAL for p in params):
        raise BadArity(
            candidate,
            "fn MessageHandler should have 1 or 2 positional input parameters "
            f"(got: {signature})"
        )

    if len(params) == 1:
        message_type = _resolve(params[0].annotation, globalns)
        if not is_record_type(message_type):
            raise NotARecord(
                candidate,
                "fn MessageHandler input parameter should be a record type "
                f"(got: {_describe(message_type)})",
                position=0
            )
    else:
        context_type = _resolve(params[0].annotation, globalns)
        if not _is_context_type(context_type):
            raise NotACancellationContext(
                candidate,
                "fn MessageHandler 1st input parameter should be a Context "
                f"(got: {_describe(context_type)})"
            )

        message_type = _resolve(params[1].annotation, globalns)
        if not is_record_type(message_type):
            raise NotARecord(
                candidate,
                "fn MessageHandler 2nd input parameter should be a record type "
                f"(got: {_describe(message_type)})",
                position=1
            )

    _check_return(candidate, _resolve(signature.return_annotation, globalns))

    _logger.debug(f"Accepted handler {_name(candidate)} for {type_name(message_type)}")

    if len(params) == 1:
        return UnaryHandler(fn=candidate, message_type=message_type)
    return ContextHandler(fn=candidate, message_type=message_type)


def _signature(candidate: Any) -> inspect.Signature:
    try:
        return inspect.signature(candidate)
    except (TypeError, ValueError) as ex:
        raise BadArity(
            candidate,
            f"fn MessageHandler signature cannot be inspected ({ex})"
        ) from ex


def _globals(candidate: Any) -> dict[str, Any]:
    target = candidate
    while isinstance(target, functools.partial):
        target = target.func
    target = inspect.unwrap(target)

    if not inspect.isfunction(target) and not inspect.ismethod(target):
        target = getattr(target, "__call__", target)

    return getattr(target, "__globals__", {})


def _resolve(annotation: Any, globalns: dict[str, Any]) -> Any:
    if not isinstance(annotation, str):
        return annotation

    try:
        return eval(annotation, globalns)
    except (NameError, TypeError, AttributeError, SyntaxError):
        # left as a string, it fails the rule of the position it annotates
        return annotation


def _check_return(candidate: Any, annotation: Any) -> None:
    if annotation is Never or annotation is NoReturn:
        raise BadReturnArity(
            candidate,
            "fn MessageHandler should have 1 output parameter (got: 0)"
        )

    if annotation is tuple or get_origin(annotation) is tuple:
        raise BadReturnArity(
            candidate,
            "fn MessageHandler should have 1 output parameter "
            f"(got: {_describe(annotation)})"
        )

    if _is_async(candidate):
        raise NotAnError(
            candidate,
            "fn MessageHandler output parameter should be an error "
            "(got: an awaitable or iterator)"
        )

    if not _is_error_type(annotation):
        raise NotAnError(
            candidate,
            "fn MessageHandler output parameter should be an error "
            f"(got: {_describe(annotation)})"
        )


def _is_error_type(annotation: Any) -> bool:
    if annotation is None or annotation is types.NoneType:
        return True

    if get_origin(annotation) in (Union, types.UnionType):
        return set(get_args(annotation)) == {Exception, types.NoneType}

    return False


def _is_context_type(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, Context)


def _is_async(candidate: Any) -> bool:
    targets = [candidate]
    if not inspect.isfunction(candidate) and not inspect.ismethod(candidate):
        targets.append(getattr(candidate, "__call__", None))

    return any(
        inspect.iscoroutinefunction(target)
        or inspect.isgeneratorfunction(target)
        or inspect.isasyncgenfunction(target)
        for target in targets
    )


def _describe(annotation: Any) -> str:
    if annotation is inspect.Parameter.empty:
        return "no annotation"
    if isinstance(annotation, str):
        return f"unresolvable annotation {annotation!r}"
    return type_name(annotation)


def _name(candidate: Any) -> str:
    return getattr(candidate, "__qualname__", repr(candidate))
