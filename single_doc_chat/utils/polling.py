import time
from dataclasses import dataclass
from typing import Callable

from single_doc_chat.logger import GLOBAL_LOGGER as log


@dataclass(frozen=True)
class PollResult:
    """Outcome of a bounded poll: whether the condition held and how many checks it took."""

    ok: bool
    attempts: int
    waited_seconds: float

    @property
    def timed_out(self) -> bool:
        return not self.ok


def poll_until(
    condition: Callable[[], bool],
    *,
    max_attempts: int,
    interval: float = 1.0,
    backoff: float = 1.0,
    max_interval: float = 10.0,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """
    Check `condition` up to `max_attempts` times, sleeping between checks.

    The delay starts at `interval` and is multiplied by `backoff` after every
    failed check (capped at `max_interval`). The condition is checked before the
    first sleep, so an already-satisfied condition costs no waiting.

    Never raises on exhaustion: callers decide what a timeout means.
    """
    delay = interval
    waited = 0.0

    for attempt in range(1, max_attempts + 1):
        if condition():
            log.debug("Poll satisfied | what=%s | attempts=%d", description, attempt)
            return PollResult(ok=True, attempts=attempt, waited_seconds=waited)

        if attempt < max_attempts:
            sleep(delay)
            waited += delay
            delay = min(delay * backoff, max_interval)

    log.warning(
        "Poll exhausted | what=%s | attempts=%d | waited=%.1fs",
        description,
        max_attempts,
        waited,
    )
    return PollResult(ok=False, attempts=max_attempts, waited_seconds=waited)
