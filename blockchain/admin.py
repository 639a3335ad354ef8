from django.contrib import admin
from .models import IndexerCursor


@admin.register(IndexerCursor)
class IndexerCursorAdmin(admin.ModelAdmin):
    list_display = ['name', 'last_indexed_block', 'updated_at']
    search_fields = ['name']
    ordering = ['-updated_at']
    actions = ['reset_cursors']

    def reset_cursors(self, request, queryset):
        updated = queryset.update(last_indexed_block=0)
        self.message_user(request, f"Reset {updated} cursor(s) to block 0.")
    reset_cursors.short_description = "Reset selected cursors to block 0"
