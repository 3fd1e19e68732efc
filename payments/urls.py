from django.urls import path

from . import views, webhook

app_name = "payments"
urlpatterns = [
    path("checkout", views.checkout_view, name="checkout"),
    path("orders/<uuid:order_id>", views.order_status_view, name="order_status"),

    # provider callbacks; public, authenticated by signature only
    path("webhooks/midtrans", webhook.midtrans_webhook, name="midtrans_webhook"),
    path("webhooks/xendit", webhook.xendit_webhook, name="xendit_webhook"),
]
