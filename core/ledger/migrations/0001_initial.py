from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LedgerRecord",
            fields=[
                (
                    "sequence_number",
                    models.PositiveBigIntegerField(
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "operation_id",
                    models.CharField(
                        help_text="Caller-supplied idempotency key.",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "operation_type",
                    models.CharField(
                        help_text="engine.domain.action, e.g. reservation.transfer.committed.",
                        max_length=255,
                    ),
                ),
                ("affected_keys", models.JSONField()),
                ("before", models.JSONField()),
                ("after", models.JSONField()),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("timestamp", models.DateTimeField()),
                ("previous_hash", models.CharField(max_length=64, unique=True)),
                ("entry_hash", models.CharField(max_length=64)),
            ],
            options={
                "db_table": "tally_ledger",
                "ordering": ["sequence_number"],
                "indexes": [
                    models.Index(fields=["timestamp"], name="idx_ledger_timestamp"),
                    models.Index(fields=["operation_type"], name="idx_ledger_op_type"),
                ],
            },
        ),
    ]
