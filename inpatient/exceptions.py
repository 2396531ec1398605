"""
API error types and the project-wide exception handler.

Every error leaving the API is wrapped as::

    {"ok": false, "error": {"code": "...", "message": "...", ...}}

Conflicts raised by the workflow services carry a distinct ``code`` so the
front-end can tell "bed already taken" from "patient already admitted"
without parsing messages.  Extra keyword arguments given to a conflict
(for example ``queueId``) are merged into the ``error`` object.
"""
from __future__ import annotations

import logging

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state.'
    default_code = 'conflict'

    def __init__(self, detail=None, code=None, **extra):
        super().__init__(detail, code)
        self.extra = extra


class BedTaken(ConflictError):
    default_detail = 'Bed is already taken.'
    default_code = 'bed_taken'


class ActiveAdmissionExists(ConflictError):
    default_detail = 'Patient already has an active admission.'
    default_code = 'active_admission_exists'


class BlockingQueueExists(ConflictError):
    default_detail = 'Patient already has a pending queue entry.'
    default_code = 'blocking_queue_exists'


class InvalidTransition(ConflictError):
    default_detail = 'Transition is not allowed from the current state.'
    default_code = 'invalid_transition'


class PatientInactive(ConflictError):
    default_detail = 'Patient is archived.'
    default_code = 'patient_inactive'


class AdmissionNotActive(ConflictError):
    default_detail = 'Admission is not active.'
    default_code = 'admission_not_active'


class TriageUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Triage prediction service is unavailable.'
    default_code = 'triage_unavailable'


def _error_code(exc) -> str:
    if isinstance(exc, Http404):
        return 'not_found'
    if isinstance(exc, APIException):
        codes = exc.get_codes()
        if isinstance(codes, str):
            return codes
        return exc.default_code
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('Unhandled error in %s', getattr(view, '__name__', view))
        return Response(
            {'ok': False, 'error': {'code': 'server_error', 'message': 'Internal server error.'}},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    # normalize response
    if isinstance(resp.data, dict):
        message = resp.data.get('detail') or resp.data
    else:
        message = resp.data
    error = {'code': _error_code(exc), 'message': message}
    error.update(getattr(exc, 'extra', {}) or {})
    resp.data = {'ok': False, 'error': error}
    return resp
