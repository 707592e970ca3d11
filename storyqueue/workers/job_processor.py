"""
Queue worker: batch read, per-message generation, publish, link, acknowledge

A message is acknowledged only after its asset is durably stored. Anything that
fails before that leaves the message in the queue; it becomes visible again once
its visibility timeout lapses and is retried by a later run.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, List

from ..core.config import DEAD_LETTER_MAX_READ_COUNT, get_queue_config
from ..core.state import JobResult, BatchSummary, STATUS_ARCHIVED, STATUS_DONE, STATUS_FAILED
from ..schemas.envelope import Envelope
from ..storage.entity_linker import resolve_entity_key, build_asset_patch

logger = logging.getLogger(__name__)


class JobProcessor:
    """Processes one batch of a media kind's queue per run()"""

    def __init__(
        self,
        media_kind: str,
        queue_client=None,
        strategy=None,
        publisher=None,
        linker=None,
        max_read_count: Optional[int] = DEAD_LETTER_MAX_READ_COUNT
    ):
        self.media_kind = media_kind
        self.queue_config = get_queue_config(media_kind)
        self.queue_name = self.queue_config["queue_name"]
        self.max_read_count = max_read_count

        if queue_client is None:
            from ..messaging.queue_client import QueueClient
            queue_client = QueueClient()
        if strategy is None:
            from ..generation.strategies import get_strategy
            strategy = get_strategy(media_kind)
        if publisher is None:
            from ..storage.gcs_utils import AssetPublisher
            publisher = AssetPublisher()
        if linker is None:
            from ..storage.entity_linker import EntityLinker
            linker = EntityLinker()

        self.queue_client = queue_client
        self.strategy = strategy
        self.publisher = publisher
        self.linker = linker

    def run(self) -> BatchSummary:
        """Read one batch and process every message in it"""
        start_time = time.time()
        envelopes = self.queue_client.read_batch(
            self.queue_name,
            self.queue_config["visibility_timeout"],
            self.queue_config["batch_size"]
        )

        if not envelopes:
            logger.info(f"[Worker] No messages in {self.queue_name}")
            return {"queue": self.queue_name, "processed": 0, "succeeded": 0, "failed": 0, "results": []}

        logger.info(f"[Worker] Processing {len(envelopes)} {self.media_kind} message(s) from {self.queue_name}")

        max_workers = min(self.queue_config["max_workers"], len(envelopes))
        if max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results: List[JobResult] = list(executor.map(self.process_message, envelopes))
        else:
            results = [self.process_message(envelope) for envelope in envelopes]

        succeeded = sum(1 for r in results if r["success"])
        summary: BatchSummary = {
            "queue": self.queue_name,
            "processed": len(results),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": results,
        }
        logger.info(
            f"[Worker] {self.queue_name}: {summary['processed']} processed, {succeeded} succeeded, "
            f"{summary['failed']} failed in {time.time() - start_time:.1f}s"
        )
        return summary

    def process_message(self, envelope: Envelope) -> JobResult:
        """
        Run one message end to end. Never raises: every failure is logged and
        reported in the result, leaving the message unacknowledged.
        """
        message_id = envelope.message_id
        result: JobResult = {
            "success": False,
            "message_id": message_id,
            "read_count": envelope.read_count,
            "status": STATUS_FAILED,
        }

        if self.max_read_count and envelope.read_count > self.max_read_count:
            logger.error(
                f"[Worker] msg_id={message_id} read {envelope.read_count} times "
                f"(cap {self.max_read_count}), archiving without processing"
            )
            try:
                if self.queue_client.archive(self.queue_name, message_id):
                    result["status"] = STATUS_ARCHIVED
                    result["error"] = f"Dead-lettered after {envelope.read_count} reads"
                else:
                    logger.warning(f"[Worker] msg_id={message_id} was no longer in {self.queue_name}, nothing archived")
                    result["error"] = "Archive error: message not found"
            except Exception as e:
                logger.error(f"[Worker] Failed to archive msg_id={message_id}: {str(e)}", exc_info=True)
                result["error"] = f"Archive error: {str(e)}"
            return result

        try:
            job = envelope.parse_job()
            if job.media_kind != self.media_kind:
                raise ValueError(f"{job.media_kind} job on the {self.media_kind} queue")

            owner_entity_key = resolve_entity_key(job)
            result["owner_entity_key"] = owner_entity_key
            logger.info(
                f"[Worker] msg_id={message_id} read_count={envelope.read_count} "
                f"owner={owner_entity_key or 'unlinked'} prompt: {job.prompt[:80]}..."
            )

            generation = self.strategy.generate(job)
            result["model_used"] = generation.get("model_used")
            if not generation["success"]:
                result["status"] = generation["status"]
                result["error"] = generation.get("error")
                logger.error(f"[Worker] msg_id={message_id} generation {generation['status']}: {generation.get('error')}")
                return result

            asset_url = self.publisher.publish(
                owner_entity_key, self.media_kind, generation["data"], generation["content_type"]
            )
            result["asset_url"] = asset_url

        except Exception as e:
            logger.error(f"[Worker] msg_id={message_id} failed: {str(e)}", exc_info=True)
            result["error"] = str(e)
            return result

        # asset is durable from here on: link and acknowledge are best-effort
        result["success"] = True
        result["status"] = STATUS_DONE
        result["linked"] = False

        if owner_entity_key:
            try:
                patch = build_asset_patch(self.media_kind, asset_url, generation.get("model_used"))
                result["linked"] = self.linker.link(owner_entity_key, patch)
            except Exception as e:
                logger.error(
                    f"[Worker] Reconciliation needed: {asset_url} stored but not linked to {owner_entity_key}: {str(e)}",
                    exc_info=True
                )
        else:
            logger.warning(f"[Worker] msg_id={message_id} has no owner entity, asset left unlinked: {asset_url}")

        try:
            self.queue_client.acknowledge(self.queue_name, message_id)
        except Exception as e:
            logger.error(f"[Worker] Acknowledge failed for msg_id={message_id} (asset already stored): {str(e)}")

        logger.info(f"[Worker] msg_id={message_id} done with {generation.get('model_used')}: {asset_url}")
        return result
