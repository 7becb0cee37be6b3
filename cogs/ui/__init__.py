from __future__ import annotations

from .modals import (
    RemindAddModal,
    RemindDeleteModal,
    RemindInventoryModal,
    RemindOverrideModal,
    RemindUpdateModal,
)
from .views import (
    RemindNoticeView,
    RemindTaskView,
    RemindUpdateMenuView,
)

__all__ = [
    "RemindAddModal",
    "RemindDeleteModal",
    "RemindInventoryModal",
    "RemindNoticeView",
    "RemindOverrideModal",
    "RemindTaskView",
    "RemindUpdateMenuView",
    "RemindUpdateModal",
]
