from __future__ import annotations

import logging

import pytest

from libs.python.http_core import HttpRequest
from services.fault_target.app.handlers import ScenarioHandler, build_handler
from services.fault_target.config import Config
from services.fault_target.domain.counter import RequestCounter
from services.fault_target.domain.scenario import Scenario
from services.fault_target.ports.faults import FaultTrigger, LeakSimulator, ProcessExit, RetainingLeak


class Terminated(Exception):
    """Raised by the fake trigger in place of ending the test process."""


class FakeTrigger(FaultTrigger):
    def __init__(self, *, raise_on_trigger: bool = True) -> None:
        self.exit_codes: list[int] = []
        self._raise = raise_on_trigger

    def trigger(self, exit_code: int):
        self.exit_codes.append(exit_code)
        if self._raise:
            raise Terminated(exit_code)


class CountingLeak(LeakSimulator):
    def __init__(self) -> None:
        self.calls = 0

    def leak(self) -> None:
        self.calls += 1


def _make_request(method: str = "GET", target: str = "/") -> HttpRequest:
    return HttpRequest(
        method=method,
        target=target,
        path=target.split("?", 1)[0],
        query="",
        headers={},
        body=b"",
        client=("127.0.0.1", 0),
    )


def _make_handler(scenario: Scenario, trigger: FaultTrigger | None = None, leak: LeakSimulator | None = None):
    return ScenarioHandler(scenario, RequestCounter(), trigger or FakeTrigger(), leak or CountingLeak())


@pytest.mark.parametrize(
    "method, target",
    [("GET", "/"), ("POST", "/anything"), ("DELETE", "/a/b?c=d"), ("PATCH", "/health")],
)
def test_normal_answers_every_method_and_path(method: str, target: str) -> None:
    handler = _make_handler(Scenario.NORMAL)

    response = handler.handle(_make_request(method, target))

    assert response.status == 200
    assert response.headers["Content-Type"] == "text/plain"
    assert response.body == b"Hello World!\n"
    assert response.headers["Content-Length"] == str(len(response.body))


def test_normal_never_triggers_faults() -> None:
    trigger = FakeTrigger()
    leak = CountingLeak()
    handler = _make_handler(Scenario.NORMAL, trigger, leak)

    for _ in range(20):
        assert handler.handle(_make_request()).status == 200

    assert trigger.exit_codes == []
    assert leak.calls == 0
    assert handler.counter.value == 20


def test_crash_counts_down_then_triggers_exit_status_one(caplog: pytest.LogCaptureFixture) -> None:
    trigger = FakeTrigger()
    handler = _make_handler(Scenario.CRASH, trigger)

    bodies = [handler.handle(_make_request()).body.decode() for _ in range(4)]

    assert bodies == [f"Hello World! (will crash soon - request {n}/5)\n" for n in range(1, 5)]
    assert trigger.exit_codes == []

    with caplog.at_level(logging.WARNING):
        with pytest.raises(Terminated):
            handler.handle(_make_request())

    assert trigger.exit_codes == [1]
    assert handler.counter.value == 5
    assert "Simulating crash..." in caplog.text


def test_crash_refuses_to_answer_when_trigger_returns() -> None:
    trigger = FakeTrigger(raise_on_trigger=False)
    handler = _make_handler(Scenario.CRASH, trigger)
    for _ in range(4):
        handler.handle(_make_request())

    with pytest.raises(RuntimeError):
        handler.handle(_make_request())

    assert trigger.exit_codes == [1]


def test_crash_responses_are_plain_text() -> None:
    handler = _make_handler(Scenario.CRASH)

    response = handler.handle(_make_request("HEAD", "/x"))

    assert response.status == 200
    assert response.headers["Content-Type"] == "text/plain"
    assert response.body.endswith(b"\n")


def test_oom_leaks_once_per_request() -> None:
    leak = CountingLeak()
    trigger = FakeTrigger()
    handler = _make_handler(Scenario.OOM, trigger, leak)

    for expected in range(1, 8):
        response = handler.handle(_make_request())
        assert response.status == 200
        assert response.headers["Content-Type"] == "text/plain"
        assert response.body == b"Hello World! (running out of memory)\n"
        assert leak.calls == expected

    assert handler.counter.value == 7
    assert trigger.exit_codes == []


def test_oom_with_retaining_leak_holds_every_block() -> None:
    leak = RetainingLeak(size=10)
    handler = _make_handler(Scenario.OOM, leak=leak)

    for _ in range(3):
        handler.handle(_make_request())

    assert leak.blocks == 3
    assert leak.retained_elements == 30


def test_build_handler_wires_real_adapters_by_default() -> None:
    handler = build_handler(Config(scenario=Scenario.CRASH))

    assert handler.scenario is Scenario.CRASH
    assert handler.counter.value == 0
    assert isinstance(handler._fault_trigger, ProcessExit)
    assert isinstance(handler._leak_simulator, RetainingLeak)
    assert handler._leak_simulator.size == 100_000_000


def test_build_handler_uses_injected_collaborators() -> None:
    counter = RequestCounter(start=2)
    leak = CountingLeak()
    handler = build_handler(Config(scenario=Scenario.OOM), counter=counter, leak_simulator=leak)

    handler.handle(_make_request())

    assert counter.value == 3
    assert leak.calls == 1


class ExhaustedLeak(LeakSimulator):
    """Fails the way a real allocation does once the address space runs out."""

    def __init__(self, succeed_first: int = 0) -> None:
        self.calls = 0
        self._succeed_first = succeed_first

    def leak(self) -> None:
        self.calls += 1
        if self.calls > self._succeed_first:
            raise MemoryError


def test_oom_allocation_failure_ends_the_process(caplog: pytest.LogCaptureFixture) -> None:
    trigger = FakeTrigger()
    leak = ExhaustedLeak(succeed_first=2)
    handler = _make_handler(Scenario.OOM, trigger, leak)

    for _ in range(2):
        assert handler.handle(_make_request()).status == 200
    assert trigger.exit_codes == []

    with caplog.at_level(logging.CRITICAL):
        with pytest.raises(Terminated):
            handler.handle(_make_request())

    assert trigger.exit_codes == [137]
    assert "out of memory" in caplog.text


def test_oom_allocation_failure_never_answers_when_trigger_returns() -> None:
    trigger = FakeTrigger(raise_on_trigger=False)
    handler = _make_handler(Scenario.OOM, trigger, ExhaustedLeak())

    with pytest.raises(RuntimeError):
        handler.handle(_make_request())

    assert trigger.exit_codes == [137]
