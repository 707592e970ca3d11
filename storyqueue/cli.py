"""
Storyqueue operator entry point

Enqueue jobs, run workers and the queue monitor, inspect queues, or serve the HTTP API.
"""

import sys
import json
import logging
import argparse

from .core.config import LOG_LEVEL, MEDIA_KINDS, MONITOR_CONFIG, get_queue_config

logger = logging.getLogger(__name__)


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storyqueue",
        description="Storyboard generation queue - asynchronous image/video generation jobs"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    enqueue = subparsers.add_parser("enqueue", help="Enqueue generation job(s)")
    enqueue.add_argument("media_kind", choices=MEDIA_KINDS)
    enqueue.add_argument("prompt", type=str)
    enqueue.add_argument("--owner", dest="owner_entity_key", help="Owning entity key (e.g. scene:sb1:sc3)")
    enqueue.add_argument("--storyboard-id")
    enqueue.add_argument("--scene-id")
    enqueue.add_argument("--character-id")
    enqueue.add_argument("--reference-url", dest="reference_asset_url", help="Reference image (gs:// or https://)")
    enqueue.add_argument("--edit", dest="edit_mode", action="store_true", help="Edit the reference image")
    enqueue.add_argument("--aspect-ratio", help="Video aspect ratio (16:9 or 9:16)")
    enqueue.add_argument("--resolution", help="Video resolution (720p or 1080p)")
    enqueue.add_argument("--duration", type=int, help="Video duration in seconds (4, 6 or 8)")
    enqueue.add_argument("--count", type=int, default=1, help="Enqueue the same job N times")
    enqueue.add_argument("--no-trigger", action="store_true", help="Do not nudge the worker after enqueueing")

    process = subparsers.add_parser("process", help="Process one batch of a queue")
    process.add_argument("media_kind", choices=MEDIA_KINDS)

    monitor = subparsers.add_parser("monitor", help="Run the queue monitor")
    monitor.add_argument("--max-runtime", type=float, default=MONITOR_CONFIG["max_runtime"])
    monitor.add_argument("--interval", type=float, default=MONITOR_CONFIG["check_interval"])
    monitor.add_argument("--worker-url", default=None, help="Dispatch batches to this worker surface (default WORKER_BASE_URL)")

    count = subparsers.add_parser("count", help="Queue length")
    count.add_argument("queue_name")

    peek = subparsers.add_parser("peek", help="Read messages without processing them")
    peek.add_argument("queue_name")
    peek.add_argument("--visibility-timeout", type=int, default=0)
    peek.add_argument("--max-count", type=int, default=10)

    archive = subparsers.add_parser("archive", help="Archive a message")
    archive.add_argument("queue_name")
    archive.add_argument("message_id", type=int)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def _job_from_args(args):
    from .schemas.envelope import JobPayload

    generation_params = {}
    if args.aspect_ratio:
        generation_params["aspect_ratio"] = args.aspect_ratio
    if args.resolution:
        generation_params["resolution"] = args.resolution
    if args.duration:
        generation_params["duration_seconds"] = args.duration

    return JobPayload(
        media_kind=args.media_kind,
        prompt=args.prompt,
        owner_entity_key=args.owner_entity_key,
        reference_asset_url=args.reference_asset_url,
        edit_mode=args.edit_mode,
        generation_params=generation_params,
        storyboard_id=args.storyboard_id,
        scene_id=args.scene_id,
        character_id=args.character_id
    )


def run_command(args, queue_client=None) -> int:
    """Execute a parsed command; returns the process exit code"""
    if args.command == "serve":
        import uvicorn
        uvicorn.run("storyqueue.api.main:app", host=args.host, port=args.port)
        return 0

    if queue_client is None:
        from .messaging.queue_client import QueueClient
        queue_client = QueueClient()

    if args.command == "enqueue":
        job = _job_from_args(args)
        queue_name = get_queue_config(job.media_kind)["queue_name"]
        message_ids = [queue_client.enqueue(queue_name, job) for _ in range(max(args.count, 1))]
        _print_json({"queue_name": queue_name, "message_ids": message_ids, "status": "queued"})
        if not args.no_trigger:
            from .workers.dispatch import trigger_worker
            trigger_worker(job.media_kind)
        return 0

    if args.command == "process":
        from .workers.job_processor import JobProcessor
        summary = JobProcessor(args.media_kind, queue_client=queue_client).run()
        _print_json(summary)
        return 0 if summary["failed"] == 0 else 1

    if args.command == "monitor":
        from .workers.monitor import run_monitor
        _print_json(run_monitor(
            max_runtime=args.max_runtime, interval=args.interval,
            queue_client=queue_client, worker_base_url=args.worker_url
        ))
        return 0

    if args.command == "count":
        _print_json({"queue_name": args.queue_name, "count": queue_client.count(args.queue_name)})
        return 0

    if args.command == "peek":
        envelopes = queue_client.peek(args.queue_name, args.visibility_timeout, args.max_count)
        _print_json({
            "queue_name": args.queue_name,
            "messages": [envelope.model_dump(mode="json") for envelope in envelopes]
        })
        return 0

    if args.command == "archive":
        archived = queue_client.archive(args.queue_name, args.message_id)
        _print_json({"queue_name": args.queue_name, "message_id": args.message_id, "archived": archived})
        return 0 if archived else 1

    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None) -> int:
    """Main entry point for the storyqueue CLI"""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    try:
        return run_command(args)
    except Exception as e:
        logger.error(f"[CLI] {args.command} failed: {str(e)}", exc_info=args.debug)
        return 1


if __name__ == "__main__":
    sys.exit(main())
