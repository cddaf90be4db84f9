"""
Run tracking - logs command executions with duration and outcome.

Nothing is persisted; start, success and failure are logged on the
`streamwarp.tracking` logger so they can be routed anywhere logging goes.
"""
import logging
import os
import socket
import time
from contextlib import contextmanager
from typing import Any, Dict, Generator

logger = logging.getLogger(__name__)

SECRET_MARKERS = ('password', 'payload', 'token', 'secret', 'cookie')


def _get_context() -> Dict[str, str]:
    """Get execution context (hostname, username)."""
    return {
        'hostname': socket.gethostname(),
        'username': os.getenv('USER') or os.getenv('USERNAME') or 'unknown',
    }


def mask_args(args: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values of secret-looking keys with ***."""
    return {
        key: '***' if value and any(m in key.lower() for m in SECRET_MARKERS) else value
        for key, value in args.items()
    }


@contextmanager
def track_run(command: str, args: Dict[str, Any]) -> Generator[Dict[str, Any], None, None]:
    """
    Context manager for tracking CLI command execution.

    Usage:
        with track_run('scrape', {'seeds': seeds}) as tracker:
            # do work...
            tracker['links'] = 12
        # Logs success/failure and duration on exit

    The tracker dict is logged as the run summary.
    """
    ctx = _get_context()
    logger.info(f"Run started: {command} {mask_args(args)} on {ctx['hostname']} as {ctx['username']}")
    tracker: Dict[str, Any] = {}
    started = time.monotonic()

    try:
        yield tracker
    except Exception as e:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.error(f"Run failed: {command} after {duration_ms} ms: {e} {tracker or ''}".rstrip())
        raise
    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(f"Run succeeded: {command} in {duration_ms} ms {tracker or ''}".rstrip())
