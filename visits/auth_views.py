"""
Authentication views.

This module defines the login endpoint that issues bearer tokens;
refreshing is served by simplejwt's ``TokenRefreshView``.  Keeping
these views apart from the authentication class (see
``visits.authentication``) prevents circular imports when Django REST
framework initialises authentication classes.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from visits.authentication import issue_tokens
from visits.serializers.auth import LoginSerializer

logger = logging.getLogger(__name__)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login_view(request):
    """
    Username/password login.  The role is always taken from the stored
    account; any ``role`` field in the body is ignored.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        logger.warning('failed login for %r from %s', username, request.META.get('REMOTE_ADDR'))
        return Response(
            {'ok': False, 'error': {'code': 'invalid_credentials', 'message': 'Invalid credentials'}},
            status=401,
        )

    logger.info('login %s (%s)', user.username, user.role or '-')
    tokens = issue_tokens(user)
    return Response({
        'ok': True,
        'access': tokens['access'],
        'refresh': tokens['refresh'],
        'user': {
            'id': user.id,
            'username': user.username,
            'role': user.role,
        },
    }, status=200)

# DRF ScopedRateThrottle reads throttle_scope from the view class
login_view.cls.throttle_scope = 'login'

