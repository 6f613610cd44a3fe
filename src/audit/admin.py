"""
Django Admin configuration for Audit app.
"""
from django.contrib import admin
from django.utils.html import format_html
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Admin panel for Audit Logs - Read Only"""
    list_display = ['timestamp', 'action_badge', 'actor', 'content_type', 'object_id', 'field_name', 'value_summary']
    list_filter = ['action', 'content_type', 'actor', 'timestamp']
    search_fields = ['actor', 'object_id', 'field_name', 'notes']
    readonly_fields = ['actor', 'content_type', 'object_id', 'action',
                       'field_name', 'old_value', 'new_value', 'timestamp',
                       'ip_address', 'notes']

    fieldsets = (
        ('Change Info', {
            'fields': ('action', 'content_type', 'object_id', 'field_name')
        }),
        ('Values', {
            'fields': ('old_value', 'new_value')
        }),
        ('Attribution', {
            'fields': ('actor', 'timestamp', 'ip_address')
        }),
        ('Notes', {
            'fields': ('notes',),
            'classes': ('collapse',)
        }),
    )

    def action_badge(self, obj):
        """Color-coded action badges"""
        colors = {
            'create': 'green',
            'update': 'orange',
            'delete': 'red',
            'restore': 'blue',
        }
        color = colors.get(obj.action, 'black')
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            color, obj.get_action_display()
        )
    action_badge.short_description = 'Action'

    def value_summary(self, obj):
        """Show old → new value summary"""
        if obj.action == 'update' and obj.new_value:
            old = obj.old_value or '∅'
            old = old[:30] + '...' if len(old) > 30 else old
            new = obj.new_value[:30] + '...' if len(obj.new_value) > 30 else obj.new_value
            return format_html(
                '<span style="color: gray;">{}</span> → <span style="color: blue;">{}</span>',
                old, new
            )
        return '-'
    value_summary.short_description = 'Change'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False
