from django.contrib import admin

from .models import ImportRun


@admin.register(ImportRun)
class ImportRunAdmin(admin.ModelAdmin):
    list_display = ('started_at', 'feed_format', 'vendor', 'source_name', 'status', 'processed', 'errors', 'finished_at')
    list_filter = ('status', 'feed_format', 'vendor')
    search_fields = ('source_name', 'vendor', 'error_message')
    readonly_fields = [field.name for field in ImportRun._meta.fields]

    def has_add_permission(self, request):
        # Runs are created by the import_feed command
        return False
