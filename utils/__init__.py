from .db import Database
from .embeds import EmbedFactory
from .validators import Validator
from .repository import RemindTaskRepository
from .metadata import RemindMetadataStore
from .notifier import RemindNotifier
from .completion import TaskCompletionHandler
from .task_service import RemindTaskService
from .reminders import ReminderScheduler

__all__ = [
    "Database",
    "EmbedFactory",
    "Validator",
    "RemindTaskRepository",
    "RemindMetadataStore",
    "RemindNotifier",
    "TaskCompletionHandler",
    "RemindTaskService",
    "ReminderScheduler",
]
