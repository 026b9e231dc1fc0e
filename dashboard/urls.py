from django.urls import path
from . import views

urlpatterns = [
    path('', views.admin_overview, name='admin-overview'),
    path('<str:unit>/', views.unit_overview, name='unit-overview'),
]
