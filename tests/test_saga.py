import pytest

from services.order_service.exceptions import (
    InvalidTransitionError,
    OrderNotFoundError,
    PartialCompletionError,
    WriteFailureError,
)
from services.order_service.repository import DocumentNotFound, StoreError
from services.order_service.saga import LifecycleChain


def recorder(log, name, error=None):
    async def action(ctx):
        log.append(name)
        if error:
            raise error
    return action


@pytest.mark.asyncio
async def test_runs_steps_in_order():
    log = []
    chain = LifecycleChain("o1").add_step("a", recorder(log, "a")).add_step("b", recorder(log, "b"))

    completed = await chain.execute({})

    assert log == ["a", "b"]
    assert completed == ["a", "b"]


@pytest.mark.asyncio
async def test_first_step_failure_is_write_failure():
    log = []
    chain = (
        LifecycleChain("o1")
        .add_step("write_order", recorder(log, "write_order", StoreError("denied")))
        .add_step("append_status_history", recorder(log, "append_status_history"))
    )

    with pytest.raises(WriteFailureError) as exc:
        await chain.execute({})

    assert log == ["write_order"]
    assert exc.value.stage == "write_order"
    assert isinstance(exc.value.cause, StoreError)
    assert isinstance(exc.value.__cause__, StoreError)


@pytest.mark.asyncio
async def test_missing_document_on_first_step_is_not_found():
    chain = LifecycleChain("o1").add_step(
        "write_order", recorder([], "write_order", DocumentNotFound("orders", "o1"))
    )

    with pytest.raises(OrderNotFoundError) as exc:
        await chain.execute({})

    assert exc.value.stage == "write_order"


@pytest.mark.asyncio
async def test_later_failure_reports_completed_steps_and_stops():
    log = []
    chain = (
        LifecycleChain("o1")
        .add_step("write_order", recorder(log, "write_order"))
        .add_step("append_status_history", recorder(log, "append_status_history", RuntimeError("boom")))
        .add_step("dispatch_notifications", recorder(log, "dispatch_notifications"))
    )

    with pytest.raises(PartialCompletionError) as exc:
        await chain.execute({})

    assert log == ["write_order", "append_status_history"]
    assert exc.value.stage == "append_status_history"
    assert exc.value.completed == ("write_order",)
    assert exc.value.order_id == "o1"


@pytest.mark.asyncio
async def test_lifecycle_errors_from_first_step_pass_through():
    error = InvalidTransitionError("o1", "CANCELLED", "SHIPPING")
    chain = LifecycleChain("o1").add_step("write_order", recorder([], "write_order", error))

    with pytest.raises(InvalidTransitionError) as exc:
        await chain.execute({})

    assert exc.value is error
