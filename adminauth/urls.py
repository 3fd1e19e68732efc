from django.urls import path

from . import views

app_name = "adminauth"
urlpatterns = [
    path("verify", views.verify_password_view, name="verify"),
    path("status", views.session_status_view, name="status"),
]
