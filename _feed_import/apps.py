from django.apps import AppConfig


class FeedImportConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = '_feed_import'
    verbose_name = 'Feed import'
