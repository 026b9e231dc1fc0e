from django.urls import path
from . import views


urlpatterns = [
    # Menu catalog URLs
    path('menu/<str:unit>/', views.MenuListView.as_view(), name='menu-list'),
    path('menu-items/<int:pk>/availability/', views.set_menu_item_availability, name='menu-item-availability'),
    path('menu-items/<int:pk>/restock/', views.restock_menu_item, name='menu-item-restock'),
    path('menu-items/<int:pk>/history/', views.menu_item_history, name='menu-item-history'),

    # Inventory ledger URLs
    path('items/', views.InventoryItemListCreateView.as_view(), name='inventory-item-list-create'),
    path('items/<int:pk>/', views.InventoryItemDetailView.as_view(), name='inventory-item-detail'),
    path('items/<int:pk>/top-up/', views.top_up_item, name='inventory-item-top-up'),
    path('items/<int:pk>/transfer/', views.transfer_item, name='inventory-item-transfer'),
    path('items/<int:pk>/use/', views.use_item, name='inventory-item-use'),
    path('items/<int:pk>/history/', views.item_history, name='inventory-item-history'),

    path('low-stock/', views.low_stock, name='low-stock'),
]
