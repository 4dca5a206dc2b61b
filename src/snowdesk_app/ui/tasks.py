"""Background worker tasks used by the main GUI window."""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from snowdesk_app.services.dispatch import Callback, Job

if TYPE_CHECKING:
    from snowdesk_app.services.customer_service import CustomerService

logger = logging.getLogger(__name__)


class LoadSignals(QObject):
    """Signals for background loading tasks."""

    done = Signal(object)
    error = Signal(str)


class JobSignals(QObject):
    """Carries a finished job's id and result back to the UI thread."""

    done = Signal(int, object)


class LoadCustomersTask(QRunnable):
    """Load the record store without blocking the UI thread."""

    def __init__(self, customer_service: CustomerService):
        super().__init__()
        self.customer_service = customer_service
        self.signals = LoadSignals()

    def run(self) -> None:
        try:
            self.signals.done.emit(self.customer_service.load_store())
        except Exception as error:  # pylint: disable=broad-except
            # Worker boundary: convert any failure to a user-visible message.
            logger.exception("Loading customers failed")
            self.signals.error.emit(str(error))


class DispatchedJobTask(QRunnable):
    """Runs one network job for the Qt dispatcher."""

    def __init__(self, job_id: int, job: Job):
        super().__init__()
        self.job_id = job_id
        self.job = job
        self.signals = JobSignals()

    def run(self) -> None:
        result: Any = None
        try:
            result = self.job()
        except Exception:  # pylint: disable=broad-except
            # Worker boundary: a failed lookup is delivered as "no result".
            logger.exception("Background job %d failed", self.job_id)
        self.signals.done.emit(self.job_id, result)


class QtDispatcher(QObject):
    """Dispatcher that runs jobs on a thread pool and calls back on the UI thread.

    Must be created on the UI thread; completion callbacks run there via a
    queued connection to ``_deliver``.
    """

    def __init__(self, thread_pool: QThreadPool | None = None, parent: QObject | None = None):
        super().__init__(parent)
        self._thread_pool = thread_pool or QThreadPool.globalInstance()
        self._ids = itertools.count(1)
        self._pending: dict[int, tuple[DispatchedJobTask, Callback]] = {}

    def __call__(self, job: Job, on_done: Callback) -> None:
        task = DispatchedJobTask(next(self._ids), job)
        task.setAutoDelete(False)
        task.signals.done.connect(self._deliver)
        self._pending[task.job_id] = (task, on_done)
        self._thread_pool.start(task)

    @Slot(int, object)
    def _deliver(self, job_id: int, result: object) -> None:
        entry = self._pending.pop(job_id, None)
        if entry is None:
            return
        _task, on_done = entry
        on_done(result)
