"""Queue monitor: the baseline pull schedule for the workers"""

import time
import logging
from typing import Dict, Any, Callable, Optional

from ..core.config import MONITOR_CONFIG, MEDIA_KINDS, WORKER_BASE_URL, get_queue_config
from .dispatch import trigger_worker

logger = logging.getLogger(__name__)


def run_monitor(
    max_runtime: float = None,
    interval: float = None,
    queue_client=None,
    processor_factory: Optional[Callable[[str], Any]] = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
    worker_base_url: str = None,
    trigger: Callable[..., bool] = trigger_worker
) -> Dict[str, Any]:
    """
    Every interval seconds until max_runtime elapses, start one worker batch for
    each media kind whose queue is not empty.

    With a worker base URL the batch is dispatched over HTTP and runs on the
    worker surface's own budget. Without one it runs in-process, and a long
    batch holds the monitor until it returns.

    Returns:
        Dict with cycles, runs (media_kind -> batches started), runtime (seconds)
        and mode (dispatch | in_process)
    """
    max_runtime = max_runtime if max_runtime is not None else MONITOR_CONFIG["max_runtime"]
    interval = interval if interval is not None else MONITOR_CONFIG["check_interval"]
    worker_base_url = worker_base_url if worker_base_url is not None else WORKER_BASE_URL

    if queue_client is None:
        from ..messaging.queue_client import QueueClient
        queue_client = QueueClient()
    if processor_factory is None and not worker_base_url:
        from .job_processor import JobProcessor
        processors = {}

        def processor_factory(media_kind: str):
            if media_kind not in processors:
                processors[media_kind] = JobProcessor(media_kind, queue_client=queue_client)
            return processors[media_kind]

    mode = "dispatch" if worker_base_url else "in_process"
    start_time = clock()
    cycles = 0
    runs = {media_kind: 0 for media_kind in MEDIA_KINDS}

    logger.info(f"[Queue Monitor] Starting in {mode} mode (max runtime {max_runtime}s, interval {interval}s)")
    while True:
        cycles += 1
        for media_kind in MEDIA_KINDS:
            if cycles > 1 and clock() - start_time >= max_runtime:
                logger.warning(f"[Queue Monitor] Runtime budget spent, skipping {media_kind} this cycle")
                break

            queue_name = get_queue_config(media_kind)["queue_name"]
            try:
                depth = queue_client.count(queue_name)
            except Exception as e:
                logger.error(f"[Queue Monitor] Could not count {queue_name}: {str(e)}")
                continue

            if depth == 0:
                continue

            if worker_base_url:
                # a read timeout only means the worker is still running
                logger.info(f"[Queue Monitor] {queue_name} has {depth} message(s), dispatching {media_kind} worker")
                trigger(media_kind, base_url=worker_base_url)
                runs[media_kind] += 1
                continue

            logger.info(f"[Queue Monitor] {queue_name} has {depth} message(s), running {media_kind} worker")
            try:
                processor_factory(media_kind).run()
                runs[media_kind] += 1
            except Exception as e:
                logger.error(f"[Queue Monitor] {media_kind} worker run failed: {str(e)}", exc_info=True)

        if clock() - start_time + interval >= max_runtime:
            break
        sleep(interval)

    runtime = clock() - start_time
    logger.info(f"[Queue Monitor] Finished after {cycles} cycle(s) in {runtime:.1f}s, runs: {runs}")
    return {"cycles": cycles, "runs": runs, "runtime": runtime, "mode": mode}
