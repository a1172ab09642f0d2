from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

FEATURE_CHOICES = [
    ("ORDER", "Order"),
    ("WHATSAPP", "WhatsApp"),
    ("IMAGE_PROCESSING", "Image processing"),
    ("TEXT_PROCESSING", "Text processing"),
    ("MANUAL", "Manual"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("tenancy", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CreditAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("total_added", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("total_used", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "tenant",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_account",
                        to="tenancy.tenant",
                    ),
                ),
            ],
            options={
                "db_table": "ph_credit_accounts",
            },
        ),
        migrations.CreateModel(
            name="CreditTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "type",
                    models.CharField(choices=[("ADD", "Add"), ("DEDUCT", "Deduct"), ("RESET", "Reset")], max_length=10),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=14)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("feature", models.CharField(choices=FEATURE_CHOICES, default="MANUAL", max_length=32)),
                ("order_id", models.BigIntegerField(blank=True, db_index=True, null=True)),
                ("order_reference", models.CharField(blank=True, max_length=128)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_transactions",
                        to="tenancy.tenant",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="credit_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "ph_credit_transactions",
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["tenant", "created_at"], name="ph_credit_tx_tenant_idx")],
            },
        ),
        migrations.CreateModel(
            name="CreditCost",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("feature", models.CharField(choices=FEATURE_CHOICES, max_length=32)),
                ("cost", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="credit_costs",
                        to="tenancy.tenant",
                    ),
                ),
            ],
            options={
                "db_table": "ph_credit_costs",
            },
        ),
        migrations.AddConstraint(
            model_name="creditcost",
            constraint=models.UniqueConstraint(fields=("tenant", "feature"), name="ph_credit_cost_tenant_feature_uniq"),
        ),
    ]
