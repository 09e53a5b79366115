from django.urls import path
from .views import CartView
app_name = "carts"

urlpatterns = [
    path("", CartView.as_view(), name="cart"),  # GET / POST add / PUT set quantity / DELETE clear
]
