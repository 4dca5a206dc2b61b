"""Scheduling seam for network calls made on behalf of the UI.

A dispatcher receives a job and a completion callback. The job runs
somewhere (inline, or on a worker thread) and the callback must be invoked
with its result on the thread that owns the UI state. Jobs handed to a
dispatcher report failures through their return value, never by raising.
"""

from __future__ import annotations

from typing import Any, Callable

Job = Callable[[], Any]
Callback = Callable[[Any], None]
Dispatcher = Callable[[Job, Callback], None]


def run_inline(job: Job, on_done: Callback) -> None:
    """Run the job synchronously; used by tests and headless tools."""
    on_done(job())
