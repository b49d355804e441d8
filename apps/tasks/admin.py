from django.contrib import admin
from .models import Task


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'user_id', 'completed', 'created_at']
    list_filter = ['completed']
    search_fields = ['title', 'user_id']
    readonly_fields = ['user_id', 'created_at', 'updated_at']
