from django.db import models

from .managers import IsActiveManager


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides created_at / updated_at timestamps.
    """

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True


class IsActiveBaseModel(models.Model):
    """
    Abstract base model for resources that are retired rather than deleted.
    """

    is_active = models.BooleanField(
        default=True, help_text="Set to False to retire this object"
    )

    objects = IsActiveManager()

    class Meta:
        abstract = True
