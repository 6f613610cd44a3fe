"""
Django Admin configuration for Employees app.

Roster employees with soft delete support, filters and restore action.
"""
from django.contrib import admin
from django.utils.html import format_html
from .models import Employee


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    """Admin panel for roster employees"""
    list_display = ['id_badge_number', 'name', 'department', 'level', 'status_badge', 'is_deleted_badge', 'created_at']
    list_filter = ['level', 'status', 'department', 'is_deleted', 'created_at']
    search_fields = ['id_badge_number', 'name', 'department', 'email']
    readonly_fields = ['id', 'status', 'created_at', 'updated_at', 'deleted_at', 'deleted_by']

    fieldsets = (
        ('Identity', {
            'fields': ('id', 'id_badge_number', 'name', 'email'),
            'description': 'Badge number is how survey responses find this employee'
        }),
        ('Organization', {
            'fields': ('department', 'level')
        }),
        ('Survey', {
            'fields': ('status',),
            'description': 'Maintained by reconciliation from the survey responses'
        }),
        ('Soft Delete', {
            'fields': ('is_deleted', 'deleted_at', 'deleted_by', 'deletion_reason'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['restore_items']

    def status_badge(self, obj):
        if obj.status == Employee.STATUS_SUBMITTED:
            return format_html('<span style="color: green; font-weight: bold;">✓ {}</span>', obj.status)
        return format_html('<span style="color: gray;">{}</span>', obj.status)
    status_badge.short_description = 'Survey'

    def is_deleted_badge(self, obj):
        if obj.is_deleted:
            return format_html('<span style="color: red; font-weight: bold;">🗑️ DELETED</span>')
        return format_html('<span style="color: green; font-weight: bold;">✓ Active</span>')
    is_deleted_badge.short_description = 'Record'

    def restore_items(self, request, queryset):
        count = 0
        for obj in queryset:
            if obj.is_deleted:
                obj.restore()
                count += 1
        self.message_user(request, f'{count} employee(s) restored.')
    restore_items.short_description = 'Restore selected'

    def get_queryset(self, request):
        return Employee.all_objects.all()
