"""config URL Configuration

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.1/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include

from .views import health_check, debug_wallet

admin.site.site_header = "Voucher Admin"
admin.site.site_title = "Voucher Admin Portal"
admin.site.index_title = "Voucher Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health', health_check, name='health'),
    path('api/debug/wallet', debug_wallet, name='debug_wallet'),
    path('api/vouchers/', include('vouchers.urls')),
]
