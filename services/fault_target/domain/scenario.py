from __future__ import annotations

from enum import Enum
from typing import Optional


CRASH_AFTER_REQUESTS = 5
CRASH_EXIT_CODE = 1
# what a supervisor sees for a process killed by the kernel OOM killer (128 + SIGKILL)
OUT_OF_MEMORY_EXIT_CODE = 137


class Scenario(str, Enum):
    NORMAL = "normal"
    CRASH = "crash"
    OOM = "oom"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Scenario":
        """Map a raw setting to a scenario; anything unrecognized is ``NORMAL``."""

        for scenario in cls:
            if scenario.value == raw:
                return scenario
        return cls.NORMAL
