"""
Django Admin configuration for Surveys app.
"""
from django.contrib import admin
from django.utils.html import format_html
from .models import SurveyResponse


@admin.register(SurveyResponse)
class SurveyResponseAdmin(admin.ModelAdmin):
    """Admin panel for survey responses - links are repaired by reconciliation"""
    list_display = ['id_badge_number', 'name', 'department', 'level', 'linked_badge', 'created_at']
    list_filter = ['level', 'department', 'created_at']
    search_fields = ['id_badge_number', 'name', 'department']
    readonly_fields = ['id', 'employee', 'created_at', 'updated_at']

    fieldsets = (
        ('Respondent', {
            'fields': ('id', 'id_badge_number', 'name', 'department', 'level')
        }),
        ('Employee Link', {
            'fields': ('employee',),
            'description': 'Set from the badge number by the reconciliation tool'
        }),
        ('Answers', {
            'fields': ('answers',),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def linked_badge(self, obj):
        if obj.is_linked:
            return format_html('<span style="color: green; font-weight: bold;">✓ Linked</span>')
        return format_html('<span style="color: orange; font-weight: bold;">⚠ Unlinked</span>')
    linked_badge.short_description = 'Employee'
