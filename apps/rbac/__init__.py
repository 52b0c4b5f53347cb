"""
RBAC (Role-Based Access Control) application.

Provides tenant-scoped access control with:
- Global user identity with a platform superuser flag
- Role assignments bound to tenant, workspace or team scopes
- Effective-role resolution with downward inheritance
- Role-escalation prevention on grant and revoke
- Audit logging
"""
