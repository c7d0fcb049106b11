from django.apps import AppConfig

class BossesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.bosses'
    label = 'bosses'
