import django.db.models.deletion
from django.db import migrations, models


def create_fairness_guard(apps, schema_editor):
    FairnessGuard = apps.get_model("jobboard", "FairnessGuard")
    FairnessGuard.objects.get_or_create(pk=1)


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DriverProfile",
            fields=[
                ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("rating", models.FloatField(default=0.0)),
                ("availability", models.JSONField(default=list)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="RouteJobRecord",
            fields=[
                ("id", models.CharField(max_length=36, primary_key=True, serialize=False)),
                ("area", models.CharField(max_length=255)),
                ("scheduled_date", models.DateField()),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("bidding_deadline", models.DateTimeField(db_index=True)),
                ("base_pay", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("estimated_stops", models.PositiveIntegerField(blank=True, null=True)),
                ("estimated_hours", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ("title", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("open", "Open"),
                            ("bidding", "Bidding"),
                            ("assigned", "Assigned"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="open",
                        max_length=20,
                    ),
                ),
                ("assigned_driver_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("accepted_bid_id", models.CharField(blank=True, max_length=36, null=True)),
                ("actual_pay", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                ("assigned_at", models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="BidRecord",
            fields=[
                ("id", models.CharField(max_length=36, primary_key=True, serialize=False)),
                ("driver_id", models.CharField(db_index=True, max_length=64)),
                ("bid_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("driver_rating_at_bid", models.FloatField()),
                ("message", models.TextField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("withdrawn", "Withdrawn"),
                            ("accepted", "Accepted"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                (
                    "job",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bids",
                        to="jobboard.routejobrecord",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="FairnessGuard",
            fields=[
                ("id", models.PositiveSmallIntegerField(default=1, primary_key=True, serialize=False)),
            ],
        ),
        migrations.RunPython(create_fairness_guard, migrations.RunPython.noop),
    ]
