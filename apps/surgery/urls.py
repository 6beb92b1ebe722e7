from rest_framework.routers import DefaultRouter
from django.urls import path, include

from apps.surgery.views import SurgicalCaseViewSet

router = DefaultRouter()
router.register(r"surgical-cases", SurgicalCaseViewSet, basename="surgical-case")

urlpatterns = [
    path("", include(router.urls)),
]
