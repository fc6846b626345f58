from django.contrib import admin

from .models import Record
from .schema import ALL_COLLECTIONS

# ==================== ADMIN CLASSES ====================


class CollectionFilter(admin.SimpleListFilter):
    title = 'collection'
    parameter_name = 'collection'

    def lookups(self, request, model_admin):
        return [(name, name) for name in ALL_COLLECTIONS]

    def queryset(self, request, queryset):
        if self.value():
            return queryset.filter(collection=self.value())
        return queryset


@admin.register(Record)
class RecordAdmin(admin.ModelAdmin):
    list_display = ('collection', 'doc_id', 'summary', 'updated_at')
    list_filter = (CollectionFilter,)
    search_fields = ('doc_id',)
    readonly_fields = ('created_at', 'updated_at')
    ordering = ('collection', '-updated_at')

    def summary(self, obj):
        data = obj.data or {}
        text = (data.get('displayName') or data.get('name') or data.get('content')
                or data.get('text') or data.get('message') or data.get('type') or '')
        text = str(text)
        return text[:80] + '...' if len(text) > 80 else text
    summary.short_description = 'Summary'
