from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Optional

from libs.python.http_core import HttpRequest, HttpResponse, make_text_response

from ..config import Config
from ..domain.counter import RequestCounter
from ..domain.scenario import CRASH_AFTER_REQUESTS, CRASH_EXIT_CODE, OUT_OF_MEMORY_EXIT_CODE, Scenario
from ..ports.faults import FaultTrigger, LeakSimulator, ProcessExit, RetainingLeak


logger = logging.getLogger(__name__)


class ScenarioHandler:
    """Answers every request according to the scenario chosen at startup.

    Method, path and headers are ignored. Each call bumps the request counter
    before anything else happens.
    """

    def __init__(
        self,
        scenario: Scenario,
        counter: RequestCounter,
        fault_trigger: FaultTrigger,
        leak_simulator: LeakSimulator,
    ) -> None:
        self.scenario = scenario
        self.counter = counter
        self._fault_trigger = fault_trigger
        self._leak_simulator = leak_simulator

    def handle(self, request: HttpRequest) -> HttpResponse:
        count = self.counter.increment()

        if self.scenario is Scenario.CRASH:
            if count >= CRASH_AFTER_REQUESTS:
                logger.warning("Simulating crash...")
                self._fault_trigger.trigger(CRASH_EXIT_CODE)
                raise RuntimeError("fault trigger returned without ending the process")
            return make_text_response(
                HTTPStatus.OK,
                f"Hello World! (will crash soon - request {count}/{CRASH_AFTER_REQUESTS})\n",
            )

        if self.scenario is Scenario.OOM:
            try:
                self._leak_simulator.leak()
            except MemoryError:
                logger.critical("allocation failed, out of memory")
                self._fault_trigger.trigger(OUT_OF_MEMORY_EXIT_CODE)
                raise RuntimeError("fault trigger returned without ending the process")
            return make_text_response(HTTPStatus.OK, "Hello World! (running out of memory)\n")

        return make_text_response(HTTPStatus.OK, "Hello World!\n")


def build_handler(
    config: Config,
    counter: Optional[RequestCounter] = None,
    fault_trigger: Optional[FaultTrigger] = None,
    leak_simulator: Optional[LeakSimulator] = None,
) -> ScenarioHandler:
    return ScenarioHandler(
        config.scenario,
        counter or RequestCounter(),
        fault_trigger or ProcessExit(),
        leak_simulator or RetainingLeak(),
    )
