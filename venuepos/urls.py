from django.urls import path, include
from drf_yasg.views import get_schema_view
from drf_yasg import openapi
from rest_framework import permissions

# Setup Swagger schema view
schema_view = get_schema_view(
    openapi.Info(
        title='API Documentation VENUE POS',
        default_version='v1',
        description="Orders, inventory and shift settlement for the venue's business units",
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path("inventory/", include("inventory.urls")),
    path("orders/", include('orders.urls')),
    path("finance/", include('finance.urls')),
    path("dashboard/", include('dashboard.urls')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
]
