import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("tenancy", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("mobile", models.CharField(max_length=20)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("address", models.TextField()),
                ("city", models.CharField(max_length=100)),
                ("state", models.CharField(max_length=100)),
                ("country", models.CharField(max_length=100)),
                ("pincode", models.CharField(max_length=12)),
                ("courier_service", models.CharField(max_length=64)),
                ("pickup_location", models.CharField(max_length=255)),
                ("package_value", models.DecimalField(decimal_places=2, max_digits=12)),
                ("weight", models.DecimalField(decimal_places=3, max_digits=10)),
                ("total_items", models.PositiveIntegerField()),
                ("is_cod", models.BooleanField(default=False)),
                ("cod_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("product_description", models.CharField(blank=True, max_length=500)),
                ("reference_number", models.CharField(max_length=128)),
                ("tracking_id", models.CharField(blank=True, db_index=True, max_length=128)),
                ("tracking_status", models.CharField(blank=True, max_length=64)),
                ("reseller_name", models.CharField(blank=True, max_length=255)),
                ("reseller_mobile", models.CharField(blank=True, max_length=20)),
                ("delhivery_waybill_number", models.CharField(blank=True, max_length=64)),
                ("delhivery_order_id", models.CharField(blank=True, max_length=128)),
                (
                    "delhivery_api_status",
                    models.CharField(
                        choices=[("unset", "Not dispatched"), ("success", "Dispatched"), ("failed", "Failed")],
                        default="unset",
                        max_length=16,
                    ),
                ),
                ("delhivery_api_error", models.TextField(blank=True)),
                ("delhivery_retry_count", models.PositiveIntegerField(default=0)),
                ("last_delhivery_attempt", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to="tenancy.tenant",
                    ),
                ),
            ],
            options={
                "db_table": "ph_orders",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["tenant", "created_at"], name="ph_order_tenant_created_idx"),
                    models.Index(fields=["tenant", "courier_service"], name="ph_order_tenant_courier_idx"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="order",
            constraint=models.UniqueConstraint(fields=("tenant", "reference_number"), name="ph_order_tenant_reference_uniq"),
        ),
    ]
