"""
Authentication and workflow user context

This module provides:
- Supabase JWT validation for dashboard users
- Shared-secret checks for cron and workflow callers
- WorkflowContext resolution for n8n actions
"""

from .manager import AuthManager, get_auth_manager, require_auth, require_shared_secret
from .workflow_context import (
    WorkflowContext,
    WorkflowContextError,
    create_workflow_context,
    extract_user_id,
    validate_user_context,
)

__all__ = [
    'AuthManager',
    'get_auth_manager',
    'require_auth',
    'require_shared_secret',
    'WorkflowContext',
    'WorkflowContextError',
    'create_workflow_context',
    'extract_user_id',
    'validate_user_context',
]
