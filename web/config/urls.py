from django.urls import include, path

urlpatterns = [
    path("api/", include("apps.monitoring.urls")),
    path("api/cart/", include("apps.carts.urls")),
    path("api/orders/", include("apps.orders.urls")),
]
