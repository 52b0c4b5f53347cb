"""
Custom DRF authentication classes.
"""
import logging
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework import exceptions

from apps.core.permissions import requested_tenant_id
from apps.core.sentry_utils import tag_request

logger = logging.getLogger(__name__)


class JWTAuthentication(BaseAuthentication):
    """
    DRF authentication class for bearer JWTs issued by the identity provider.

    Requests without an ``Authorization`` header fall through as anonymous so
    permission classes decide; a malformed or invalid token is rejected with
    401 immediately.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        """
        Return ``(user, payload)`` for a valid bearer token.

        Returns:
            tuple: (user, payload) if the token is valid, None if no token was sent
        """
        from apps.rbac.services import AuthService

        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid Authorization header.')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token encoding.')

        payload = AuthService.validate_jwt(token)
        if payload is None:
            logger.info(
                "Rejected invalid or expired JWT",
                extra={'request_id': getattr(request, 'request_id', None)}
            )
            raise exceptions.AuthenticationFailed('Invalid or expired token.')

        user = AuthService.get_user_from_payload(payload)
        if user is None:
            raise exceptions.AuthenticationFailed('User not found or inactive.')

        tag_request(user, requested_tenant_id(request))
        return (user, payload)

    def authenticate_header(self, request):
        return self.keyword
