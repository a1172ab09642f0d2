"""
Celery configuration for the parcelhub project.

Post-commit side effects (notifications, shipment cancellation, upstream
fulfillment confirmation) and the periodic audit purge and courier
tracking refresh run here.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('parcelhub')

# Load configuration from Django settings with CELERY namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# Discovers tasks.py in every installed app
app.autodiscover_tasks()
