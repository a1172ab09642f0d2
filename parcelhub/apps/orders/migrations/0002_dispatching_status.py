from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="order",
            name="delhivery_api_status",
            field=models.CharField(
                choices=[
                    ("unset", "Not dispatched"),
                    ("dispatching", "Dispatch in progress"),
                    ("success", "Dispatched"),
                    ("failed", "Failed"),
                ],
                default="unset",
                max_length=16,
            ),
        ),
    ]
