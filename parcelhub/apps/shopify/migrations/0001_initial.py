import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("tenancy", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="WebhookIntegration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("shop_domain", models.CharField(max_length=255, unique=True)),
                ("access_token", models.CharField(blank=True, max_length=255)),
                ("webhook_secret", models.CharField(max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("auto_create_orders", models.BooleanField(default=False)),
                ("confirm_fulfillment", models.BooleanField(default=False)),
                ("default_courier_service", models.CharField(blank=True, max_length=64)),
                ("default_pickup_location", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="webhook_integrations",
                        to="tenancy.tenant",
                    ),
                ),
            ],
            options={
                "db_table": "ph_webhook_integrations",
            },
        ),
        migrations.CreateModel(
            name="ShadowOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("shop_domain", models.CharField(max_length=255)),
                ("upstream_order_id", models.BigIntegerField()),
                ("upstream_order_name", models.CharField(blank=True, max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("synced", "Synced"),
                            ("error", "Error"),
                            ("fulfilled", "Fulfilled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("payload", models.JSONField(default=dict)),
                ("tracking_number", models.CharField(blank=True, max_length=128)),
                ("tracking_company", models.CharField(blank=True, max_length=128)),
                ("upstream_fulfillment_id", models.BigIntegerField(blank=True, null=True)),
                ("last_topic", models.CharField(blank=True, max_length=64)),
                ("error", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "integration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shadow_orders",
                        to="shopify.webhookintegration",
                    ),
                ),
                (
                    "order",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="shadow",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "ph_shadow_orders",
            },
        ),
        migrations.AddConstraint(
            model_name="shadoworder",
            constraint=models.UniqueConstraint(
                fields=("shop_domain", "upstream_order_id"), name="ph_shadow_shop_upstream_uniq"
            ),
        ),
    ]
