from django.urls import path

from . import views

app_name = 'vouchers'

urlpatterns = [
    path('link', views.create_voucher_link, name='link'),
    path('verify', views.verify_voucher, name='verify'),
    path('verify/<str:code>', views.verify_voucher_by_code, name='verify_code'),
    path('claim', views.claim_voucher, name='claim'),
    path('execute-claim', views.execute_claim, name='execute_claim'),
    path('claim-status', views.update_claim_status, name='claim_status'),
    path('claim-tx/<str:tx_hash>', views.get_claim_tx_status, name='claim_tx'),
    path('user/<str:address>', views.list_user_vouchers, name='user_vouchers'),
    path('sync/<str:voucher_id>', views.sync_voucher_status, name='sync'),
    path('details/<str:voucher_id>', views.get_voucher_details, name='details'),
    path('<str:voucher_id>', views.delete_voucher, name='delete'),
]
