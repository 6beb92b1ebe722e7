from django.db import models


class IsActiveQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)


class IsActiveManager(models.Manager.from_queryset(IsActiveQuerySet)):
    """
    Default manager for retirable objects.

    Inactive rows stay visible so that lookups can tell "retired" apart
    from "does not exist"; callers narrow with .active().
    """
