from __future__ import annotations

from django.db import models


class MessageLog(models.Model):
    class Recipient(models.TextChoices):
        CUSTOMER = "customer", "Customer"
        RESELLER = "reseller", "Reseller"

    class Status(models.TextChoices):
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"
        SKIPPED = "skipped", "Skipped"

    tenant = models.ForeignKey('tenancy.Tenant', on_delete=models.CASCADE, related_name='message_logs')
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='message_logs',
    )
    channel = models.CharField(max_length=20, default='whatsapp')
    recipient = models.CharField(max_length=16, choices=Recipient.choices)
    phone = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices)
    error = models.TextField(blank=True)
    provider_request_id = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ph_message_logs'
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return f"{self.channel}:{self.recipient} [{self.status}]"
