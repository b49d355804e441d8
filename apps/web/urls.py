from django.urls import path

from . import views

app_name = 'web'

urlpatterns = [
    path('', views.home, name='home'),
    path('auth/login', views.login_view, name='login'),
    path('auth/logout', views.logout_view, name='logout'),
    path('auth/unauthenticated', views.unauthenticated, name='unauthenticated'),
    path('tasks/', views.tasks_page, name='tasks'),
    path('tasks/new', views.create_task_view, name='create_task'),
    path('tasks/<int:task_id>/edit', views.edit_task_view, name='edit_task'),
    path('tasks/<int:task_id>/toggle', views.toggle_task_view, name='toggle_task'),
    path('tasks/<int:task_id>/delete', views.delete_task_view, name='delete_task'),
]
