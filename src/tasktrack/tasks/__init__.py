"""Task bookkeeping documents."""

from tasktrack.tasks.record import TaskAnnotations, TaskRecord
from tasktrack.tasks.store import (
    ActiveTaskRegistry,
    CompletedIndex,
    CompletionPrecondition,
    DocumentSnapshot,
    ManifestNotFound,
    NoActiveTask,
    ProgressLog,
    ProjectPaths,
    TaskNotFound,
    TaskStore,
    UnreadableDocument,
)

__all__ = [
    "ActiveTaskRegistry",
    "CompletedIndex",
    "CompletionPrecondition",
    "DocumentSnapshot",
    "ManifestNotFound",
    "NoActiveTask",
    "ProgressLog",
    "ProjectPaths",
    "TaskAnnotations",
    "TaskNotFound",
    "TaskRecord",
    "TaskStore",
    "UnreadableDocument",
]
