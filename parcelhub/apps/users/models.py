from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    class Roles(models.TextChoices):
        PLATFORM_ADMIN = "platform_admin", _("Platform Admin")
        CLIENT_ADMIN = "client_admin", _("Client Admin")
        CLIENT_USER = "client_user", _("Client User")

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='users',
        null=True,
        blank=True,
    )
    role = models.CharField(max_length=32, choices=Roles.choices, default=Roles.CLIENT_USER)
    api_token = models.CharField(max_length=128, blank=True, null=True, unique=True)
    api_last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'ph_users'
        verbose_name = 'user'
        verbose_name_plural = 'users'

    def __str__(self):
        return self.username
