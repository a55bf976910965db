"""
Permission Core - project scoping and per-operation authorization.
"""

from tracker.kernel.permissions.permission_service import (
    Decision,
    Operation,
    PermissionService,
    ProjectRef,
    authorize,
    enforce,
    item_visibility,
    project_visibility,
    require_human,
)

__all__ = [
    "Decision",
    "Operation",
    "PermissionService",
    "ProjectRef",
    "authorize",
    "enforce",
    "item_visibility",
    "project_visibility",
    "require_human",
]
