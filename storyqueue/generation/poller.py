"""Long-running operation poller"""

import time
import logging
from typing import Dict, Any, Callable, Optional

from ..core.state import STATUS_DONE, STATUS_FAILED, STATUS_TIMED_OUT

logger = logging.getLogger(__name__)


def _timed_out(operation_name: str, poll_attempts: int, error: str) -> Dict[str, Any]:
    logger.error(
        f"[Poller] {error} waiting for {operation_name}; "
        f"the queue visibility timeout must stay above this budget"
    )
    return {
        "status": STATUS_TIMED_OUT,
        "response": None,
        "poll_attempts": poll_attempts,
        "error": error,
    }


def poll_operation(
    generator,
    operation_name: str,
    max_attempts: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    deadline: Optional[float] = None,
    clock: Callable[[], float] = time.time
) -> Dict[str, Any]:
    """
    Poll an operation until it finishes, the attempt budget runs out or the
    deadline (epoch seconds per clock) would be crossed by the next wait.

    Sleeps before every status fetch (a freshly submitted operation is never done).
    A status request that errors ends polling as failed.

    Returns:
        Dict with status (done | failed | timed_out), response (on done),
        poll_attempts and error
    """
    for attempt in range(1, max_attempts + 1):
        if deadline is not None and clock() + interval > deadline:
            return _timed_out(operation_name, attempt - 1, f"Deadline reached after {attempt - 1} polls")

        sleep(interval)
        result = generator.query_task(operation_name)
        status = result.get("data", {}).get("task_status")

        if status == "succeed":
            logger.info(f"[Poller] {operation_name} done after {attempt} poll(s)")
            return {
                "status": STATUS_DONE,
                "response": result["data"].get("task_result", {}).get("response") or {},
                "poll_attempts": attempt,
                "error": None,
            }

        if status == "failed":
            logger.error(f"[Poller] {operation_name} failed after {attempt} poll(s): {result.get('message')}")
            return {
                "status": STATUS_FAILED,
                "response": None,
                "poll_attempts": attempt,
                "error": result.get("message") or "Operation failed",
            }

        logger.info(f"[Poller] Waiting... ({attempt}/{max_attempts}, {int(attempt * interval)}s elapsed)")

    return _timed_out(operation_name, max_attempts, f"Timed out after {max_attempts} polls")
