#!/usr/bin/env python3
"""
Entry point for processing user-action status-change events.

Usage:
    python run_worker.py [events.jsonl]

Reads one JSON event per line from the given file (or stdin) and dispatches
each to the workflow handlers.

Environment:
    - MODWF_PUBLIC_BASE_URL
    - MODWF_SECURITY__ENCRYPTION_KEY, MODWF_SECURITY__APPEAL_TOKEN_SECRET
    - MODWF_WEBHOOKS__BASE_URL, MODWF_WEBHOOKS__API_KEY
    - MODWF_EMAIL__API_KEY
"""

import asyncio
import json
import sys
from typing import Iterable

import structlog

from moderation_workflows import WorkflowCoordinator
from moderation_workflows.config import WorkflowSettings
from moderation_workflows.errors import ValidationError

logger = structlog.get_logger("run_worker")


async def _main(lines: Iterable[str]) -> int:
    failures = 0
    async with WorkflowCoordinator(WorkflowSettings()) as coordinator:
        for line in lines:
            if not line.strip():
                continue
            try:
                outcomes = await coordinator.handle_event(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.error("event_rejected", error=str(exc))
                failures += 1
                continue
            failures += sum(1 for outcome in outcomes if not outcome.succeeded)
    return 1 if failures else 0


if __name__ == "__main__":
    source = open(sys.argv[1], encoding="utf-8") if len(sys.argv) > 1 else sys.stdin
    try:
        with source:
            sys.exit(asyncio.run(_main(source)))
    except KeyboardInterrupt:
        print("\nWorker shutdown requested by user.")
