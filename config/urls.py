from django.urls import include, path

urlpatterns = [
    path("api/v1/", include(("apps.surgery.urls", "surgery"), namespace="surgery")),
    path(
        "api/v1/",
        include(("apps.scheduling.urls", "scheduling"), namespace="scheduling"),
    ),
]
