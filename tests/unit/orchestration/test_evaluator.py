"""
Unit tests for TransitionEvaluator.
"""

import asyncio

import pytest

from phasegate.exceptions import (
    ConfigurationError,
    EvaluationCancelledError,
    EvaluationError,
    EvaluationTimeoutError,
)
from phasegate.models import (
    Collection,
    DrawingSet,
    FieldInstall,
    GateContext,
    Phase,
    PunchItem,
)
from phasegate.orchestration.gates import GateRegistry, check_planning_to_detailing
from phasegate.orchestration.state_graph import StateGraph
from tests.fixtures.records import FIXED_TIME, PROJECT_ID, WP_ID, work_package
from tests.fixtures.stores import InstrumentedStore


@pytest.mark.asyncio
async def test_detailing_without_drawings_is_blocked(make_evaluator, detailing_wp) -> None:
    evaluator = make_evaluator(InstrumentedStore())

    trace = await evaluator.evaluate(detailing_wp, Phase.FABRICATION)

    assert trace.overall_pass is False
    assert trace.edge_legal is True
    assert "No drawings linked to work package" in trace.blocking_reasons
    assert len(trace.blocking_reasons) == len(trace.required_actions)
    assert trace.timestamp == FIXED_TIME


@pytest.mark.asyncio
async def test_detailing_with_released_drawing_passes(make_evaluator) -> None:
    wp = work_package(Phase.DETAILING, linked_drawing_set_ids=("DS-1",))
    store = InstrumentedStore(
        {Collection.DRAWING_SET: [DrawingSet(id="DS-1", project_id=PROJECT_ID, status="FFF")]}
    )

    trace = await make_evaluator(store).evaluate(wp, Phase.FABRICATION)

    assert trace.overall_pass is True
    assert trace.blocking_reasons == ()
    assert [result.gate for result in trace.gate_results] == ["detailing_to_fabrication"]


@pytest.mark.asyncio
async def test_erection_with_open_punch_item_is_blocked(make_evaluator) -> None:
    store = InstrumentedStore(
        {
            Collection.FIELD_INSTALL: [
                FieldInstall(id="FI-1", work_package_id=WP_ID, status="completed"),
                FieldInstall(id="FI-2", work_package_id=WP_ID, status="completed"),
            ],
            Collection.PUNCH_ITEM: [PunchItem(id="PI-1", work_package_id=WP_ID, status="open")],
        }
    )

    trace = await make_evaluator(store).evaluate(work_package(Phase.ERECTION), Phase.CLOSEOUT)

    assert trace.overall_pass is False
    assert any(reason.startswith("1 open punch items") for reason in trace.blocking_reasons)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source,target",
    [
        (Phase.PLANNING, Phase.FABRICATION),
        (Phase.DETAILING, Phase.DETAILING),
        (Phase.ERECTION, Phase.FABRICATION),
        (Phase.COMPLETED, Phase.PLANNING),
    ],
)
async def test_illegal_edge_has_single_reason_and_no_store_calls(make_evaluator, source, target) -> None:
    store = InstrumentedStore()

    trace = await make_evaluator(store).evaluate(work_package(source), target)

    assert trace.overall_pass is False
    assert trace.edge_legal is False
    assert trace.gate_results == ()
    assert trace.blocking_reasons == (f"Illegal transition: {source.value} -> {target.value}",)
    assert len(trace.required_actions) == 1
    assert store.filter_calls == []


@pytest.mark.asyncio
async def test_illegal_edge_suggests_next_phase(make_evaluator) -> None:
    trace = await make_evaluator(InstrumentedStore()).evaluate(
        work_package(Phase.PLANNING), Phase.DELIVERY
    )
    assert trace.required_actions == ("Advance to detailing first",)


@pytest.mark.asyncio
async def test_evaluate_is_idempotent(make_evaluator, detailing_wp) -> None:
    store = InstrumentedStore(latency={Collection.RFI: 0.01})
    evaluator = make_evaluator(store)

    first = await evaluator.evaluate(detailing_wp, Phase.FABRICATION)
    second = await evaluator.evaluate(detailing_wp, Phase.FABRICATION)

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()
    assert store.update_calls == []


@pytest.mark.asyncio
async def test_cancellation_mid_evaluation(make_evaluator, detailing_wp) -> None:
    store = InstrumentedStore(latency={Collection.DRAWING_SET: 5.0})
    cancel = asyncio.Event()
    context = GateContext().with_cancellation(cancel_event=cancel)

    async def fire():
        await asyncio.sleep(0.05)
        cancel.set()

    firing = asyncio.create_task(fire())
    with pytest.raises(EvaluationCancelledError) as exc_info:
        await make_evaluator(store).evaluate(detailing_wp, Phase.FABRICATION, context)
    await firing

    assert not isinstance(exc_info.value, EvaluationTimeoutError)
    assert Collection.DRAWING_SET in store.filter_calls
    assert Collection.DRAWING_SET not in store.completed_filters
    assert store.update_calls == []


@pytest.mark.asyncio
async def test_already_cancelled_context_issues_no_queries(make_evaluator, detailing_wp) -> None:
    store = InstrumentedStore()
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(EvaluationCancelledError):
        await make_evaluator(store).evaluate(
            detailing_wp, Phase.FABRICATION, GateContext(cancel_event=cancel)
        )

    assert store.filter_calls == []


@pytest.mark.asyncio
async def test_unfired_cancel_event_leaves_no_pending_tasks(make_evaluator, detailing_wp) -> None:
    store = InstrumentedStore({Collection.WORK_PACKAGE: [detailing_wp]})
    evaluator = make_evaluator(store)

    trace = await evaluator.evaluate(
        detailing_wp, Phase.FABRICATION, GateContext(cancel_event=asyncio.Event())
    )

    assert trace.overall_pass is False
    leftover = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
    assert leftover == []


@pytest.mark.asyncio
async def test_timeout(make_evaluator, detailing_wp) -> None:
    store = InstrumentedStore(latency={Collection.RFI: 5.0})

    with pytest.raises(EvaluationTimeoutError):
        await make_evaluator(store).evaluate(
            detailing_wp, Phase.FABRICATION, GateContext(timeout=0.05)
        )


@pytest.mark.asyncio
async def test_store_failure_propagates_as_evaluation_error(make_evaluator, detailing_wp) -> None:
    store = InstrumentedStore(failures={Collection.DRAWING_SET: 1})

    with pytest.raises(EvaluationError):
        await make_evaluator(store).evaluate(detailing_wp, Phase.FABRICATION)


def test_missing_predicate_detected_at_startup(make_evaluator) -> None:
    registry = GateRegistry().register(Phase.PLANNING, Phase.DETAILING, check_planning_to_detailing)

    with pytest.raises(ConfigurationError):
        make_evaluator(InstrumentedStore(), registry=registry)


@pytest.mark.asyncio
async def test_custom_graph_and_registry(make_evaluator) -> None:
    graph = StateGraph({Phase.PLANNING: (Phase.DETAILING,)})
    registry = GateRegistry().register(Phase.PLANNING, Phase.DETAILING, check_planning_to_detailing)
    evaluator = make_evaluator(InstrumentedStore(), graph=graph, registry=registry)

    trace = await evaluator.evaluate(work_package(Phase.DETAILING), Phase.FABRICATION)

    assert trace.edge_legal is False
    assert trace.required_actions == ("No transitions are allowed from detailing",)
