from django.urls import path, include

urlpatterns = [
    path("payments/", include("payments.urls", namespace="payments")),  # checkout + webhooks
    path("admin-auth/", include("adminauth.urls", namespace="adminauth")),  # admin password gate
    path("activity/", include("activity.urls", namespace="activity")),
]

handler404 = "agencysite.views.error_404_view"
handler500 = "agencysite.views.error_500_view"
