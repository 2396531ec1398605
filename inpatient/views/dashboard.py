"""
Dashboard summary.

Bed, queue and admission counts for the home screens of every role.  The
payload is cached briefly and dropped whenever a workflow endpoint
changes the underlying rows.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsClinicalRole
from ..services import dashboard


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def dashboard_summary(request):
    return Response(dashboard.summary())
