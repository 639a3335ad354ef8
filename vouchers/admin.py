from django.contrib import admin
from .models import VoucherCode, ClaimAttempt


@admin.register(VoucherCode)
class VoucherCodeAdmin(admin.ModelAdmin):
    list_display = ['code', 'voucher_id', 'creator_address', 'amount', 'claimed', 'cancelled', 'claim_tx_status', 'created_at']
    list_filter = ['claimed', 'cancelled', 'claim_tx_status', 'created_at']
    search_fields = ['code', 'voucher_id', 'creator_address', 'claimed_by', 'claim_tx_hash']
    readonly_fields = ['code', 'voucher_id', 'password_hash', 'created_at', 'on_chain_created_at']
    ordering = ['-created_at']


@admin.register(ClaimAttempt)
class ClaimAttemptAdmin(admin.ModelAdmin):
    list_display = ['voucher_code', 'ip_address', 'recipient_address', 'success', 'attempted_at']
    list_filter = ['success', 'attempted_at']
    search_fields = ['voucher_code', 'ip_address', 'recipient_address']
    ordering = ['-attempted_at']

    def has_change_permission(self, request, obj=None):
        return False
