import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ImportRun",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("feed_format", models.CharField(max_length=32)),
                ("vendor", models.CharField(blank=True, max_length=64)),
                ("source_name", models.CharField(blank=True, max_length=512)),
                (
                    "status",
                    models.CharField(
                        choices=[("running", "Running"), ("completed", "Completed"), ("failed", "Failed")],
                        db_index=True,
                        default="running",
                        max_length=16,
                    ),
                ),
                ("processed", models.PositiveIntegerField(default=0)),
                ("errors", models.PositiveIntegerField(default=0)),
                (
                    "error_log",
                    models.CharField(
                        blank=True,
                        help_text="Path of the JSON-lines file holding one entry per failed unit.",
                        max_length=1024,
                    ),
                ),
                ("summary", models.JSONField(blank=True, default=dict)),
                ("error_message", models.TextField(blank=True)),
                ("started_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Import run",
                "verbose_name_plural": "Import runs",
                "ordering": ("-started_at",),
            },
        ),
    ]
