from rest_framework.routers import DefaultRouter
from django.urls import path, include

from apps.scheduling.views import TheaterBookingViewSet, TheaterViewSet

router = DefaultRouter()
router.register(r"theaters", TheaterViewSet, basename="theater")
router.register(r"theater-bookings", TheaterBookingViewSet, basename="theater-booking")

urlpatterns = [
    path("", include(router.urls)),
]
