from django.urls import path
from . import views


urlpatterns = [
    # Cart URLs, one cart per table, room or counter
    path('cart/<str:unit>/<str:source_id>/', views.cart_detail, name='cart-detail'),
    path('cart/<str:unit>/<str:source_id>/add/', views.cart_add, name='cart-add'),
    path('cart/<str:unit>/<str:source_id>/remove/', views.cart_remove, name='cart-remove'),
    path('cart/<str:unit>/<str:source_id>/checkout/', views.checkout_preview, name='cart-checkout'),
    path('cart/<str:unit>/<str:source_id>/place/', views.place_order, name='cart-place-order'),
    path('cart/<str:unit>/<str:source_id>/voice/', views.voice_order, name='cart-voice-order'),

    # Order URLs
    path('', views.OrderListView.as_view(), name='order-list'),
    path('kitchen/', views.kitchen_display, name='kitchen-display'),
    path('<uuid:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('<uuid:pk>/status/', views.update_order_status, name='order-status'),
    path('<uuid:pk>/receipt/', views.get_receipt, name='order-receipt'),
]
