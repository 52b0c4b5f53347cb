"""
OKR models: cycles, objectives and key results.

Objectives carry the access-relevant state (visibility, publish flag, cycle).
Key results never decide access on their own fields; they defer to their
parent objective.
"""
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet


class CycleStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    ACTIVE = 'ACTIVE', 'Active'
    LOCKED = 'LOCKED', 'Locked'
    ARCHIVED = 'ARCHIVED', 'Archived'


LOCKING_CYCLE_STATUSES = frozenset({CycleStatus.LOCKED, CycleStatus.ARCHIVED})


class VisibilityLevel(models.TextChoices):
    PUBLIC_TENANT = 'PUBLIC_TENANT', 'Public (tenant)'
    PRIVATE = 'PRIVATE', 'Private'
    # Deprecated levels, still readable; all behave as PUBLIC_TENANT
    WORKSPACE_ONLY = 'WORKSPACE_ONLY', 'Workspace only (deprecated)'
    TEAM_ONLY = 'TEAM_ONLY', 'Team only (deprecated)'
    MANAGER_CHAIN = 'MANAGER_CHAIN', 'Manager chain (deprecated)'
    EXEC_ONLY = 'EXEC_ONLY', 'Exec only (deprecated)'


class Cycle(BaseModel):
    """Time period OKRs are planned against; its status drives the cycle lock."""

    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.CASCADE,
        related_name='cycles',
        db_index=True,
        help_text="Organization owning this cycle"
    )
    name = models.CharField(
        max_length=100,
        help_text="Cycle name (e.g., 'Q1 2025')"
    )
    status = models.CharField(
        max_length=16,
        choices=CycleStatus.choices,
        default=CycleStatus.DRAFT,
        db_index=True,
        help_text="Lifecycle status; LOCKED and ARCHIVED lock their OKRs"
    )
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = 'cycles'
        ordering = ['-start_date', 'name']

    def __str__(self):
        return f"{self.name} ({self.status})"

    @property
    def is_locking(self):
        return self.status in LOCKING_CYCLE_STATUSES


class ObjectiveQuerySet(BaseModelQuerySet):
    def for_organization(self, organization_id):
        return self.filter(organization_id=organization_id)

    def published(self):
        return self.filter(is_published=True)


class Objective(BaseModel):
    """
    Objective owned by one user and scoped to an organization.

    ``workspace`` and ``team`` are optional narrower scopes inside the same
    organization.
    """

    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.CASCADE,
        related_name='objectives',
        db_index=True,
        help_text="Organization (tenant) this objective belongs to"
    )
    workspace = models.ForeignKey(
        'tenants.Workspace',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='objectives',
    )
    team = models.ForeignKey(
        'tenants.Team',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='objectives',
    )
    cycle = models.ForeignKey(
        Cycle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='objectives',
    )
    owner = models.ForeignKey(
        'rbac.User',
        on_delete=models.CASCADE,
        related_name='owned_objectives',
        help_text="User accountable for this objective"
    )

    title = models.CharField(max_length=500)
    description = models.TextField(blank=True)

    visibility_level = models.CharField(
        max_length=32,
        choices=VisibilityLevel.choices,
        default=VisibilityLevel.PUBLIC_TENANT,
        db_index=True,
        help_text="PRIVATE restricts reads to owner, tenant admins and the whitelist"
    )
    is_published = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Published objectives are locked to tenant administrators"
    )
    published_at = models.DateTimeField(null=True, blank=True)

    objects = BaseModelManager.from_queryset(ObjectiveQuerySet)()

    class Meta:
        db_table = 'objectives'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'visibility_level']),
            models.Index(fields=['organization', 'is_published']),
        ]

    def __str__(self):
        return self.title

    def publish(self):
        self.is_published = True
        self.published_at = timezone.now()
        self.save(update_fields=['is_published', 'published_at', 'updated_at'])


class KeyResult(BaseModel):
    """
    Measurable result under an objective.

    The parent link is nullable only to tolerate orphaned legacy rows;
    access to an orphan is always denied.
    """

    objective = models.ForeignKey(
        Objective,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='key_results',
        help_text="Parent objective; authoritative for visibility and locks"
    )
    owner = models.ForeignKey(
        'rbac.User',
        on_delete=models.CASCADE,
        related_name='owned_key_results',
    )
    title = models.CharField(max_length=500)

    start_value = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    target_value = models.DecimalField(max_digits=14, decimal_places=2, default=100)
    current_value = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    unit = models.CharField(max_length=32, blank=True)

    class Meta:
        db_table = 'key_results'
        ordering = ['created_at']

    def __str__(self):
        return self.title
