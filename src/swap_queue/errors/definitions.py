"""Pre-defined error instances for static queue failures."""

from __future__ import annotations

from swap_queue.errors.queue_errors import QueueError

# -- Queue -----------------------------------------------------------------

ErrManagerNotReady = QueueError(
    "queue manager is not initialized", status_code=503, code="manager-not-ready"
)
ErrTaskAlreadyExists = QueueError(
    "a task with this id already exists", status_code=409, code="task-already-exists"
)
ErrTaskStillActive = QueueError(
    "only completed or failed tasks can be removed", status_code=409, code="task-still-active"
)

# -- Validation ------------------------------------------------------------

ErrUnknownTaskType = QueueError(
    "no step executor registered for task type", status_code=400, code="unknown-task-type"
)
