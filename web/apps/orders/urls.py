from django.urls import path
from .views import OrdersCollectionView, OrderDetailView
app_name = "orders"

urlpatterns = [
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST checkout
    path("<uuid:oid>/", OrderDetailView.as_view(), name="orders-detail"),  # GET / PUT status / DELETE cancel
]
