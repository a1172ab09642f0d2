from typing import Optional, Tuple

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed


class ApiTokenAuthentication(BaseAuthentication):
    keyword = 'Api-Token'

    def authenticate(self, request) -> Optional[Tuple[object, None]]:
        # Support both X-API-Token and api-token headers
        token = request.META.get('HTTP_X_API_TOKEN') or request.META.get('HTTP_API_TOKEN')
        if not token:
            return None
        User = get_user_model()
        try:
            user = User.objects.select_related('tenant').get(api_token=token)
        except User.DoesNotExist:
            raise AuthenticationFailed('Invalid API token')

        if not user.is_active:
            raise AuthenticationFailed('User inactive or deleted')

        user.api_last_used_at = timezone.now()
        user.save(update_fields=['api_last_used_at'])
        return (user, None)

    def authenticate_header(self, request):
        return self.keyword
