from django.urls import path
from . import views


urlpatterns = [
    path('<str:unit>/shift/', views.shift_summary, name='shift-summary'),
    path('<str:unit>/close/', views.close_shift, name='shift-close'),
    path('<str:unit>/settlements/', views.settlement_history, name='settlement-history'),

    # Manager approval of a cash variance
    path('close-requests/<int:pk>/', views.close_request_detail, name='close-request-detail'),
    path('close-requests/<int:pk>/authorize/', views.authorize_close, name='close-request-authorize'),
]
