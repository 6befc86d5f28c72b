import functools
from typing import NoReturn, Optional

import pytest

from msgmux.core.context import CancelContext, Context
from msgmux.core.errors import (
    BadArity,
    BadReturnArity,
    HandlerRegistrationError,
    NotACancellationContext,
    NotARecord,
    NotAnError,
    NotCallable,
)
from msgmux.core.routing.invoker import ContextHandler, UnaryHandler
from msgmux.core.routing.validator import validate_handler
from tests.fake import fake_context
from tests.fake.fake_context import FakeContext
from tests.fake.fake_messages import CancelOrder, NotARecordClass, OrderCompleted, RefundIssued


@pytest.mark.ut
def test_unary_handler():
    def handler(msg: CancelOrder) -> None:
        ...

    spec = validate_handler(handler)
    assert isinstance(spec, UnaryHandler)
    assert spec.fn is handler
    assert spec.message_type is CancelOrder


@pytest.mark.ut
@pytest.mark.parametrize("ctx_type", [Context, CancelContext, FakeContext])
def test_context_handler(ctx_type):
    def handler(ctx: ctx_type, msg: OrderCompleted) -> Exception | None:
        ...

    spec = validate_handler(handler)
    assert isinstance(spec, ContextHandler)
    assert spec.message_type is OrderCompleted


@pytest.mark.ut
def test_pydantic_message():
    def handler(msg: RefundIssued) -> Optional[Exception]:
        ...

    assert validate_handler(handler).message_type is RefundIssued


@pytest.mark.ut
def test_string_annotations_are_resolved():
    def handler(ctx: "Context", msg: "CancelOrder") -> "Exception | None":
        ...

    assert validate_handler(handler).message_type is CancelOrder


@pytest.mark.ut
def test_bound_method_partial_and_callable_instance():
    class Service:
        def on_cancel(self, msg: CancelOrder) -> None:
            ...

        def __call__(self, ctx: Context, msg: OrderCompleted) -> None:
            ...

    def with_prefix(prefix: str, msg: RefundIssued) -> None:
        ...

    assert isinstance(validate_handler(Service().on_cancel), UnaryHandler)
    assert isinstance(validate_handler(Service()), ContextHandler)
    assert validate_handler(functools.partial(with_prefix, "x")).message_type is RefundIssued


@pytest.mark.ut
@pytest.mark.parametrize("candidate", [42, "handler", None, CancelOrder(order_id="o", reason="r"), CancelOrder])
def test_not_callable(candidate):
    with pytest.raises(NotCallable):
        validate_handler(candidate)


@pytest.mark.ut
def test_bad_arity():
    def none() -> None:
        ...

    def three(ctx: Context, msg: CancelOrder, extra: CancelOrder) -> None:
        ...

    def varargs(*msgs: CancelOrder) -> None:
        ...

    def kwonly(*, msg: CancelOrder) -> None:
        ...

    def kwargs(msg: CancelOrder, **extra) -> None:
        ...

    for candidate in (none, three, varargs, kwonly, kwargs):
        with pytest.raises(BadArity):
            validate_handler(candidate)


@pytest.mark.ut
@pytest.mark.parametrize(
    "annotation",
    [int, str, list, dict[str, str], list[CancelOrder], NotARecordClass, "Missing"],
)
def test_unary_param_not_a_record(annotation):
    def handler(msg: annotation) -> None:
        ...

    with pytest.raises(NotARecord) as excinfo:
        validate_handler(handler)

    assert excinfo.value.position == 0


@pytest.mark.ut
def test_missing_annotations():
    def unannotated(msg) -> None:
        ...

    with pytest.raises(NotARecord) as excinfo:
        validate_handler(unannotated)
    assert "no annotation" in str(excinfo.value)

    with pytest.raises(NotARecord):
        validate_handler(lambda msg: None)


@pytest.mark.ut
def test_unresolvable_forward_reference():
    def handler(msg: "DoesNotExist") -> None:  # noqa: F821
        ...

    with pytest.raises(NotARecord):
        validate_handler(handler)


@pytest.mark.ut
def test_binary_second_param_not_a_record():
    def handler(ctx: Context, msg: int) -> None:
        ...

    with pytest.raises(NotARecord) as excinfo:
        validate_handler(handler)

    assert excinfo.value.position == 1


@pytest.mark.ut
@pytest.mark.parametrize("annotation", [fake_context.Context, CancelOrder, object, str])
def test_first_param_not_a_context(annotation):
    def handler(ctx: annotation, msg: CancelOrder) -> None:
        ...

    with pytest.raises(NotACancellationContext):
        validate_handler(handler)


@pytest.mark.ut
@pytest.mark.parametrize("annotation", [NoReturn, tuple[None, Exception], tuple])
def test_bad_return_arity(annotation):
    def handler(msg: CancelOrder) -> annotation:
        ...

    with pytest.raises(BadReturnArity):
        validate_handler(handler)


@pytest.mark.ut
@pytest.mark.parametrize(
    "annotation",
    [int, bool, Exception, ValueError | None, BaseException | None, object, CancelOrder],
)
def test_not_an_error(annotation):
    def handler(msg: CancelOrder) -> annotation:
        ...

    with pytest.raises(NotAnError):
        validate_handler(handler)


@pytest.mark.ut
def test_missing_return_annotation():
    def handler(msg: CancelOrder):
        ...

    with pytest.raises(NotAnError):
        validate_handler(handler)


@pytest.mark.ut
def test_coroutine_and_generator_handlers():
    async def coro(msg: CancelOrder) -> None:
        ...

    def gen(msg: CancelOrder) -> None:
        yield

    class AsyncService:
        async def __call__(self, msg: CancelOrder) -> None:
            ...

    for candidate in (coro, gen, AsyncService()):
        with pytest.raises(NotAnError):
            validate_handler(candidate)


@pytest.mark.ut
def test_registration_errors_are_not_ordinary_exceptions():
    with pytest.raises(HandlerRegistrationError) as excinfo:
        try:
            validate_handler(42)
        except Exception:
            pytest.fail("registration errors must not be caught as Exception")

    assert not isinstance(excinfo.value, Exception)
    assert excinfo.value.handler == 42
    assert str(excinfo.value).startswith("msgmux:")


@pytest.mark.ut
def test_unresolvable_return_is_reported_on_return():
    def handler(msg: "CancelOrder") -> "DoesNotExist":  # noqa: F821
        ...

    with pytest.raises(NotAnError) as excinfo:
        validate_handler(handler)

    assert "DoesNotExist" in str(excinfo.value)


@pytest.mark.ut
def test_annotation_type_error_is_reported_on_its_position():
    def bad_param(msg: "int | 'X'") -> None:
        ...

    def bad_context(ctx: "int | 'X'", msg: CancelOrder) -> None:
        ...

    def bad_return(msg: CancelOrder) -> "int | 'X'":
        ...

    with pytest.raises(NotARecord) as excinfo:
        validate_handler(bad_param)
    assert excinfo.value.position == 0
    assert "unresolvable annotation" in str(excinfo.value)

    with pytest.raises(NotACancellationContext):
        validate_handler(bad_context)

    with pytest.raises(NotAnError):
        validate_handler(bad_return)


@pytest.mark.ut
def test_string_annotations_on_partial_and_callable_instance():
    class Service:
        def __call__(self, ctx: "Context", msg: "OrderCompleted") -> "None":
            ...

    def with_prefix(prefix: str, msg: "RefundIssued") -> "Exception | None":
        ...

    assert validate_handler(Service()).message_type is OrderCompleted
    assert validate_handler(functools.partial(with_prefix, "x")).message_type is RefundIssued
