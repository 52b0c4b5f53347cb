"""
Abstract base model shared by every Strata table.
"""
import uuid

from django.db import models
from django.utils import timezone


class BaseModelQuerySet(models.QuerySet):

    def delete(self):
        """Soft delete: stamp ``deleted_at`` instead of removing rows."""
        return self.update(deleted_at=timezone.now())


class BaseModelManager(models.Manager):
    """Hides soft-deleted rows."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class BaseModel(models.Model):
    """
    UUID primary key, creation/update timestamps and soft delete.

    Organizations, workspaces, OKRs and audit rows all inherit from this, so
    identifiers that cross a tenant boundary are always opaque UUIDs.
    ``objects`` skips deleted rows; ``objects_with_deleted`` does not.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = BaseModelManager.from_queryset(BaseModelQuerySet)()
    objects_with_deleted = models.Manager.from_queryset(BaseModelQuerySet)()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def delete(self, using=None, keep_parents=False):
        self.deleted_at = timezone.now()
        self.save(using=using, update_fields=['deleted_at', 'updated_at'])

    @property
    def is_deleted(self):
        return self.deleted_at is not None
