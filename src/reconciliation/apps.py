from django.apps import AppConfig


class ReconciliationAppConfig(AppConfig):
    name = 'reconciliation'
