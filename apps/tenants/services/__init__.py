"""
Services for organizations, workspaces and the private-visibility whitelist.
"""
from .whitelist_service import WhitelistService, union_whitelists
from .organization_service import OrganizationService
from .workspace_service import WorkspaceService

__all__ = [
    'WhitelistService',
    'union_whitelists',
    'OrganizationService',
    'WorkspaceService',
]
