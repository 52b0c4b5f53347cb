"""
Tenant models for multi-tenant isolation.

Organization is the hard isolation boundary. Workspaces belong to exactly
one organization and may nest (cycle-free); teams belong to exactly one
workspace, so every scope resolves to a single organization.
"""
from django.db import models
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet


class OrganizationManager(BaseModelManager):
    """Manager for organization queries."""

    def by_slug(self, slug):
        return self.filter(slug=slug).first()


class Organization(BaseModel):
    """
    Organization (tenant) owning workspaces, teams, cycles and OKRs.

    The private-visibility whitelist has historically been stored in four
    places: the two top-level fields below and the same two keys inside
    ``metadata`` (``privateWhitelist`` / ``execOnlyWhitelist``). Readers
    must take the union; writers use ``exec_only_whitelist``.
    """

    name = models.CharField(
        max_length=255,
        help_text="Organization name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )

    private_whitelist = models.JSONField(
        default=list,
        blank=True,
        help_text="Legacy list of user ids with read access to PRIVATE objectives"
    )
    exec_only_whitelist = models.JSONField(
        default=list,
        blank=True,
        help_text="Canonical list of user ids with read access to PRIVATE objectives"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form organization metadata (may carry legacy whitelist keys)"
    )

    objects = OrganizationManager.from_queryset(BaseModelQuerySet)()

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return self.name


class WorkspaceQuerySet(BaseModelQuerySet):
    def for_organization(self, organization_id):
        return self.filter(organization_id=organization_id)


class Workspace(BaseModel):
    """
    Workspace inside an organization, optionally nested under a parent.

    The parent chain must stay acyclic; use ``WorkspaceService.set_parent``
    rather than assigning ``parent`` directly.
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='workspaces',
        db_index=True,
        help_text="Organization this workspace belongs to"
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
        help_text="Parent workspace (same organization)"
    )
    name = models.CharField(
        max_length=255,
        help_text="Workspace name"
    )

    objects = BaseModelManager.from_queryset(WorkspaceQuerySet)()

    class Meta:
        db_table = 'workspaces'
        ordering = ['name']
        indexes = [
            models.Index(fields=['organization', 'name']),
        ]

    def __str__(self):
        return self.name


class Team(BaseModel):
    """Team inside a workspace."""

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='teams',
        db_index=True,
        help_text="Workspace this team belongs to"
    )
    name = models.CharField(
        max_length=255,
        help_text="Team name"
    )

    class Meta:
        db_table = 'teams'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def organization_id(self):
        return self.workspace.organization_id
