from django.db import models
from django.utils import timezone


class ImportRun(models.Model):
    """Record counts and errors for each import_feed execution."""

    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'
    STATUS_CHOICES = [
        (RUNNING, 'Running'),
        (COMPLETED, 'Completed'),
        (FAILED, 'Failed'),
    ]

    feed_format = models.CharField(max_length=32)
    vendor = models.CharField(max_length=64, blank=True)
    source_name = models.CharField(max_length=512, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=RUNNING, db_index=True)
    processed = models.PositiveIntegerField(default=0)
    errors = models.PositiveIntegerField(default=0)
    error_log = models.CharField(
        max_length=1024,
        blank=True,
        help_text="Path of the JSON-lines file holding one entry per failed unit.",
    )
    summary = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True)
    started_at = models.DateTimeField(default=timezone.now, db_index=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("-started_at",)
        verbose_name = "Import run"
        verbose_name_plural = "Import runs"

    def __str__(self):
        return f"{self.feed_format} import {self.status} at {self.started_at:%Y-%m-%d %H:%M:%S}"

    def finish(self, status, summary=None, error_message=''):
        summary = summary or {}
        self.status = status
        self.processed = summary.get('processed', 0)
        self.errors = summary.get('errors', 0)
        self.error_log = summary.get('error_log') or ''
        self.summary = summary
        self.error_message = error_message
        self.finished_at = timezone.now()
        self.save(update_fields=[
            'status', 'processed', 'errors', 'error_log', 'summary', 'error_message', 'finished_at',
        ])
