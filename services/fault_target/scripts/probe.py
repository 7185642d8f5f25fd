from __future__ import annotations

"""Drive a running fault target with sequential requests and report each answer.

Exits with an error message naming the first request that got no HTTP answer,
which is how a crashed or OOM-killed target shows up from the outside.
"""

import argparse
import http.client
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Callable, List, Optional

DEFAULT_URL = "http://127.0.0.1:3000/"


@dataclass
class ProbeAttempt:
    index: int
    status: Optional[int] = None
    body: str = ""
    error: Optional[str] = None

    @property
    def answered(self) -> bool:
        return self.error is None


@dataclass
class ProbeResult:
    attempts: List[ProbeAttempt] = field(default_factory=list)

    @property
    def failed_at(self) -> Optional[int]:
        for attempt in self.attempts:
            if not attempt.answered:
                return attempt.index
        return None


def probe(
    url: str,
    count: int,
    timeout: float = 2.0,
    interval: float = 0.0,
    opener: Optional[Callable[..., object]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ProbeResult:
    open_url = opener or urllib.request.urlopen
    result = ProbeResult()
    for index in range(1, count + 1):
        attempt = ProbeAttempt(index)
        try:
            with open_url(url, timeout=timeout) as resp:
                attempt.status = resp.getcode()
                attempt.body = resp.read().decode()
        except urllib.error.HTTPError as err:
            attempt.status = err.code
            attempt.body = err.read().decode()
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            attempt.error = str(getattr(exc, "reason", exc)) or type(exc).__name__
        result.attempts.append(attempt)
        _report(attempt)
        if not attempt.answered:
            break
        if interval > 0 and index < count:
            sleep(interval)
    return result


def _report(attempt: ProbeAttempt) -> None:
    if attempt.answered:
        print(f"[probe] #{attempt.index} -> {attempt.status} | {attempt.body.rstrip()}")
    else:
        print(f"[probe] #{attempt.index} -> no answer ({attempt.error})")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send sequential requests to a fault target.")
    parser.add_argument("--url", default=DEFAULT_URL, help="Target URL (default: %(default)s).")
    parser.add_argument("--count", type=int, default=10, help="Number of requests to send.")
    parser.add_argument("--timeout", type=float, default=2.0, help="Per-request timeout in seconds.")
    parser.add_argument("--interval", type=float, default=0.0, help="Pause between requests in seconds.")
    args = parser.parse_args(argv)
    if args.count < 1:
        parser.error("--count must be at least 1")
    return args


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    result = probe(args.url, args.count, timeout=args.timeout, interval=args.interval)
    failed_at = result.failed_at
    if failed_at is not None:
        raise SystemExit(f"target stopped answering at request {failed_at}")


if __name__ == "__main__":
    main()
