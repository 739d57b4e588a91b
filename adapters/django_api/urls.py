"""
Tally Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("accounts", views.accounts_create_view),
    path("accounts/<str:account_id>", views.account_detail_view),
    path("items", views.items_create_view),
    path("items/<str:item_id>", views.item_detail_view),
    path("transfers", views.transfers_create_view),
    path("orders", views.orders_create_view),
    path("orders/<str:order_id>", views.order_detail_view),
    path("stats/<str:bucket>", views.stats_detail_view),
]
