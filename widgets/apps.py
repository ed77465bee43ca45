from django.apps import AppConfig


class WidgetsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "widgets"

    def ready(self):
        from .registry import load_widget_types, registry

        load_widget_types(registry)
        registry.freeze()
