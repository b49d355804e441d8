from django.db import models


class TaskFilter(models.TextChoices):
    ALL = 'all', 'All'
    DONE = 'done', 'Completed'
    PENDING = 'pending', 'Pending'


class Task(models.Model):
    """
    A to-do item owned by exactly one identity-provider subject.

    user_id is the provider's subject id (no FK: users live in the
    identity provider, not in this database).
    """
    title = models.TextField()
    description = models.TextField(null=True, blank=True)
    completed = models.BooleanField(default=True)
    user_id = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', 'id']
        indexes = [
            models.Index(fields=['user_id', '-created_at'], name='task_owner_created_idx'),
        ]

    def __str__(self):
        return self.title or f"Task {self.pk}"
