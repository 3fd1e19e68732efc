from django.urls import path

from . import views

app_name = "activity"
urlpatterns = [
    path("log", views.log_activity_view, name="log"),
]
