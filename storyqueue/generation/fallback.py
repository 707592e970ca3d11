"""Ordered model fallback chain"""

import time
import logging
from typing import Callable, Dict, Any, List, Optional

logger = logging.getLogger(__name__)


def run_fallback_chain(
    candidates: List[str],
    attempt_fn: Callable[[str], Dict[str, Any]],
    label: str = "Fallback",
    deadline: Optional[float] = None,
    clock: Callable[[], float] = time.time
) -> Dict[str, Any]:
    """
    Try candidate models in order until one accepts the request.

    attempt_fn(model_id) returns an attempt dict carrying an "accepted" flag.
    A candidate that accepted ends the chain whatever its final outcome: a
    failure after acceptance is never retried on the next model.
    When deadline (epoch seconds per clock) has passed, no further candidate is tried.

    Returns:
        Dict with accepted (bool), model_used (accepting model or None),
        last (attempt dict of the accepting/last candidate), attempts (all)
        and deadline_reached
    """
    attempts = []
    for index, model_id in enumerate(candidates, start=1):
        if deadline is not None and clock() >= deadline:
            logger.error(f"[{label}] Deadline reached after {len(attempts)} attempt(s), not trying {model_id}")
            return {
                "accepted": False,
                "model_used": None,
                "last": attempts[-1] if attempts else None,
                "attempts": attempts,
                "deadline_reached": True,
            }

        logger.info(f"[{label}] Trying model {index}/{len(candidates)}: {model_id}")
        attempt = attempt_fn(model_id)
        attempts.append(attempt)

        if attempt.get("accepted"):
            return {
                "accepted": True,
                "model_used": model_id,
                "last": attempt,
                "attempts": attempts,
                "deadline_reached": False,
            }

        reason = "quota exceeded" if attempt.get("quota_exceeded") else attempt.get("error", "not accepted")
        logger.warning(f"[{label}] {model_id} not available ({reason}), trying next model")

    logger.error(f"[{label}] All {len(candidates)} candidate model(s) failed")
    return {
        "accepted": False,
        "model_used": None,
        "last": attempts[-1] if attempts else None,
        "attempts": attempts,
        "deadline_reached": False,
    }
