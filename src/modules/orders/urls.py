"""Order URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.orders.views import PlaceOrderView

urlpatterns = [
    path("orders/", PlaceOrderView.as_view(), name="place-order"),
]
