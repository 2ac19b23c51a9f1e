from __future__ import annotations

import os
import sys
from typing import Callable

import setproctitle

ExitFunction = Callable[[int], None]


def terminate_process(code: int) -> None:
    """Exit immediately with ``code`` after flushing stdio, skipping interpreter cleanup."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (ValueError, OSError):
            pass
    os._exit(code)


def set_process_title(title: str) -> None:
    """Rename the process as shown by `ps` and `top`."""
    setproctitle.setproctitle(title)
