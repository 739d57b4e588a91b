from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="EntityRecord",
            fields=[
                (
                    "key",
                    models.CharField(
                        help_text="Prefixed entity key (account:<id>, item:<id>).",
                        max_length=255,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "value",
                    models.JSONField(
                        help_text="Serialized entity value (Account / InventoryItem).",
                    ),
                ),
                (
                    "version",
                    models.PositiveBigIntegerField(
                        help_text="Incremented by exactly 1 on every successful mutation.",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "tally_entity_store",
                "ordering": ["key"],
            },
        ),
    ]
