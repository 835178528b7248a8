"""Timestamped trace/warning/error lines on stderr."""

import os
import sys
from datetime import datetime


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _is_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def _emit(msg: str) -> None:
    # stdout may carry child output, so everything goes to stderr.
    print(f"[{_timestamp()}] {msg}", file=sys.stderr, flush=True)


def trace(msg: str) -> None:
    _emit(msg)


def warning(msg: str) -> None:
    _emit(f"WARNING: {msg}")


def error(msg: str) -> None:
    if _is_github_actions():
        print(f"::error::{msg}", flush=True)
    _emit(f"ERROR: {msg}")
