# drmp_core/common/models.py
from __future__ import annotations

from django.db import models
from django.utils.timezone import now


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class SoftDeleteManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)


class BaseModel(TimeStampedModel):
    """
    Shared entity shape: surrogate id, audit timestamps/actors,
    soft-delete flag, optimistic-lock version, tenant id.

    `objects` hides soft-deleted rows; `all_objects` sees everything.
    """
    created_by = models.BigIntegerField(null=True, blank=True)
    updated_by = models.BigIntegerField(null=True, blank=True)

    is_deleted = models.BooleanField(default=False, db_index=True)
    version = models.PositiveIntegerField(default=0)
    tenant_id = models.UUIDField(null=True, blank=True, db_index=True)

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True

    def save_versioned(self, *, update_fields: list[str], actor_id: int | None = None) -> None:
        """
        Conditional UPDATE guarded by `version`.
        Raises BusinessException(CONCURRENT_MODIFICATION_ERROR) when another
        writer bumped the row first.
        """
        from drmp_core.common.api.exceptions import BusinessException
        from drmp_core.common.error_codes import ErrorCode

        fields = [f for f in update_fields if f not in {"version", "updated_at", "updated_by"}]
        if actor_id is not None:
            self.updated_by = actor_id
            fields.append("updated_by")

        expected = self.version
        self.updated_at = now()
        values = {}
        for name in fields:
            field = self._meta.get_field(name)
            values[field.attname] = getattr(self, field.attname)
        values["updated_at"] = self.updated_at
        values["version"] = expected + 1

        rows = type(self).all_objects.filter(pk=self.pk, version=expected).update(**values)
        if rows == 0:
            raise BusinessException(ErrorCode.CONCURRENT_MODIFICATION_ERROR)
        self.version = expected + 1

    def soft_delete(self, *, actor_id: int | None = None) -> None:
        self.is_deleted = True
        self.save_versioned(update_fields=["is_deleted"], actor_id=actor_id)
