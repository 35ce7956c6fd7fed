#!/usr/bin/env python3
# =============================================================================
# CLI Tool for the Task Service
# =============================================================================
# Feeds a raw Lambda payload through the same pipeline the Lambda uses and
# prints the protocol response.
#
# Usage:
#   python tools/cli.py ping
#   python tools/cli.py sqs --pretty
#   python tools/cli.py --json '{"httpMethod": "GET", "resource": "/task"}'
#   python tools/cli.py --file event.json
# =============================================================================

import argparse
import json
import os
import sys
import uuid
from typing import Any, Dict

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from task_service.app import build_pipeline  # noqa: E402

SAMPLES: Dict[str, Dict[str, Any]] = {
    "ping": {"httpMethod": "GET", "resource": "/ping", "path": "/ping",
             "requestContext": {"requestId": "cli-ping"}},
    "list": {"httpMethod": "GET", "resource": "/task", "path": "/task",
             "requestContext": {"requestId": "cli-list"}},
    "create": {"httpMethod": "POST", "resource": "/task", "path": "/task",
               "body": json.dumps({"name": "Created from CLI", "description": "cli"}),
               "requestContext": {"requestId": "cli-create"}},
    "sqs": {"Records": [
        {"messageId": "cli-msg-1", "eventSource": "aws:sqs",
         "body": json.dumps({"name": "Queued task"})},
        {"messageId": "cli-msg-2", "eventSource": "aws:sqs", "body": "not json"},
    ]},
    "scheduled": {"id": "cli-scheduled", "source": "aws.events", "detail-type": "Scheduled Event",
                  "detail": {}},
    "custom": {"id": "cli-custom", "source": "com.custom.tasks", "detail-type": "custom-event.task",
               "detail": {"name": "Task from custom event"}},
}


class CliContext:
    """Minimal stand-in for the Lambda context object."""

    function_name = "task-service-cli"

    def __init__(self, remaining_ms: int):
        self.aws_request_id = str(uuid.uuid4())
        self._remaining_ms = remaining_ms

    def get_remaining_time_in_millis(self) -> int:
        return self._remaining_ms


def _is_error(response: Any) -> bool:
    if isinstance(response, dict):
        if "errorType" in response:
            return True
        if response.get("statusCode", 200) >= 400:
            return True
        return bool(response.get("batchItemFailures"))
    return False


def main():
    parser = argparse.ArgumentParser(
        description="Task Service CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Samples: {', '.join(SAMPLES)}",
    )
    parser.add_argument("sample", nargs="?", choices=sorted(SAMPLES), help="Built-in sample event")
    parser.add_argument("--json", "-j", help="Raw event JSON")
    parser.add_argument("--file", "-f", help="JSON file to load the event from")
    parser.add_argument("--pretty", "-p", action="store_true", help="Pretty print output")
    parser.add_argument("--remaining-ms", type=int, default=900000, help="Simulated remaining invocation time")

    args = parser.parse_args()

    if args.file:
        with open(args.file, "r") as f:
            event = json.load(f)
    elif args.json:
        event = json.loads(args.json)
    elif args.sample:
        event = SAMPLES[args.sample]
    else:
        parser.print_help()
        sys.exit(1)

    response = build_pipeline().handle(event, CliContext(args.remaining_ms))

    if args.pretty:
        print(json.dumps(response, indent=2, ensure_ascii=False, default=str))
    else:
        print(json.dumps(response, ensure_ascii=False, default=str))

    if _is_error(response):
        sys.exit(1)


if __name__ == "__main__":
    main()
