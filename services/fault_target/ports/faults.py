from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import List, NoReturn


LEAK_BLOCK_SIZE = 100_000_000
LEAK_ELEMENT = "memory leak"


class FaultTrigger(ABC):
    @abstractmethod
    def trigger(self, exit_code: int) -> NoReturn:
        ...


class ProcessExit(FaultTrigger):
    """Ends the whole process, not just the calling connection thread."""

    def trigger(self, exit_code: int) -> NoReturn:
        logging.shutdown()
        sys.stdout.flush()
        sys.stderr.flush()
        os._exit(exit_code)


class LeakSimulator(ABC):
    @abstractmethod
    def leak(self) -> None:
        ...


class RetainingLeak(LeakSimulator):
    """Allocates one large list per call and never lets go of it.

    CPython frees a list as soon as its last reference disappears, so each
    block is held here to make memory grow from request to request.
    """

    def __init__(self, size: int = LEAK_BLOCK_SIZE, element: str = LEAK_ELEMENT) -> None:
        if size < 0:
            raise ValueError("leak size must not be negative")
        self.size = size
        self.element = element
        self._blocks: List[List[str]] = []

    def leak(self) -> None:
        self._blocks.append([self.element] * self.size)

    @property
    def blocks(self) -> int:
        return len(self._blocks)

    @property
    def retained_elements(self) -> int:
        return sum(len(block) for block in self._blocks)
