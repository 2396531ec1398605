"""
Triage prediction.

The prediction model itself runs as a separate HTTP service configured by
``TRIAGE_MODEL_URL``.  This module validates the vitals, derives the
engineered features the model expects, calls the model once (no retry) and
stores the result as an immutable :class:`~inpatient.models.TriageRecord`.
"""
from __future__ import annotations

import logging
from typing import Optional

import requests
from django.conf import settings
from django.db.models import Q
from rest_framework.exceptions import ValidationError

from inpatient.exceptions import TriageUnavailable
from inpatient.models import PatientQueue, TriageRecord
from inpatient.services.audit import log_action

logger = logging.getLogger(__name__)

# Inclusive bounds for every vital sign, keyed by API field name.
VITAL_RANGES: dict[str, tuple[float, float]] = {
    'sex': (0, 1),
    'arrivalMode': (1, 7),
    'injury': (1, 2),
    'mental': (1, 4),
    'pain': (0, 1),
    'age': (0, 150),
    'sbp': (50, 250),
    'dbp': (30, 150),
    'hr': (30, 250),
    'rr': (5, 60),
    'bt': (35.0, 42.0),
}

VITAL_COLUMNS = {
    'sex': 'sex',
    'arrivalMode': 'arrival_mode',
    'injury': 'injury',
    'mental': 'mental',
    'pain': 'pain',
    'age': 'age',
    'sbp': 'sbp',
    'dbp': 'dbp',
    'hr': 'hr',
    'rr': 'rr',
    'bt': 'bt',
}

SEVERITY_CRITICAL = 'CRITICAL'
SEVERITY_NON_CRITICAL = 'NON_CRITICAL'


def validate_vitals(vitals: dict) -> dict:
    """Return the vitals unchanged or raise ``ValidationError`` per field."""
    errors: dict[str, list[str]] = {}
    for field, (low, high) in VITAL_RANGES.items():
        value = vitals.get(field)
        if value is None:
            errors[field] = ['This field is required.']
        elif not (low <= value <= high):
            errors[field] = [f'Must be between {low} and {high}.']
    if errors:
        raise ValidationError(errors)
    return vitals


def derive_features(vitals: dict) -> dict:
    sbp, dbp, hr, rr, bt = (vitals[k] for k in ('sbp', 'dbp', 'hr', 'rr', 'bt'))
    pulse_pressure = sbp - dbp
    return {
        'shockIndex': round(hr / sbp, 4),
        'pulsePressure': float(pulse_pressure),
        'ppRatio': round(pulse_pressure / sbp, 4),
        'hrBtInteraction': round(hr * bt, 4),
        'rrHrRatio': round(rr / hr, 4),
        'isFever': bt >= 38.0,
        'isTachy': hr > 100,
        'isLowSbp': sbp < 90,
        'isLowDbp': dbp < 60,
        'isTachypnea': rr > 20,
    }


def call_model(features: dict) -> dict:
    """POST the feature vector to the model service.

    Returns ``{'triageLevel': int | None, 'severity': str}``.  Raises
    :class:`TriageUnavailable` when the service is not configured, cannot
    be reached or answers with something unusable.
    """
    url = getattr(settings, 'TRIAGE_MODEL_URL', '')
    if not url:
        raise TriageUnavailable('Triage model is not configured.')
    try:
        r = requests.post(url, json=features, timeout=settings.TRIAGE_MODEL_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error('Triage model call failed: %s', exc)
        raise TriageUnavailable(f'Triage model call failed: {exc}')
    if not isinstance(data, dict):
        logger.error('Triage model returned a non-object answer: %r', data)
        raise TriageUnavailable('Triage model returned an unusable answer.')
    level = data.get('triageLevel', data.get('triage_level'))
    severity = data.get('severity') or ''
    if level is None and not severity:
        logger.error('Triage model returned neither level nor severity: %r', data)
        raise TriageUnavailable('Triage model returned an empty prediction.')
    try:
        level = int(level) if level is not None else None
    except (TypeError, ValueError):
        logger.error('Triage model returned a non-integer level: %r', level)
        raise TriageUnavailable('Triage model returned an invalid level.')
    return {'triageLevel': level, 'severity': str(severity)}


def predict(actor, vitals: dict, *, patient=None, name: str = '') -> TriageRecord:
    validate_vitals(vitals)
    features = derive_features(vitals)
    prediction = call_model({**{k: vitals[k] for k in VITAL_RANGES}, **features})
    record = TriageRecord.objects.create(
        patient=patient,
        name=name or (patient.full_name if patient else ''),
        created_by=actor if getattr(actor, 'pk', None) else None,
        **{column: vitals[field] for field, column in VITAL_COLUMNS.items()},
        shock_index=features['shockIndex'],
        pulse_pressure=features['pulsePressure'],
        pp_ratio=features['ppRatio'],
        hr_bt_interaction=features['hrBtInteraction'],
        rr_hr_ratio=features['rrHrRatio'],
        is_fever=features['isFever'],
        is_tachy=features['isTachy'],
        is_low_sbp=features['isLowSbp'],
        is_low_dbp=features['isLowDbp'],
        is_tachypnea=features['isTachypnea'],
        triage_level=prediction['triageLevel'],
        severity=prediction['severity'],
    )
    log_action(user=actor, action='triage_predict', object_type='triage', object_id=record.id,
               detail={'level': record.triage_level, 'severity': record.severity,
                       'patientId': patient.id if patient else None})
    logger.info('Triage #%s level=%s severity=%s', record.id, record.triage_level, record.severity)
    return record


def _is_critical(level: Optional[int], severity: str) -> bool:
    sev = (severity or '').lower()
    if level == 0 or 'red' in sev:
        return True
    return 'critical' in sev and 'non-critical' not in sev and 'non critical' not in sev


def _is_non_critical(level: Optional[int], severity: str) -> bool:
    sev = (severity or '').lower()
    return level == 1 or 'non' in sev or 'green' in sev


def infer_priority(record: Optional[TriageRecord]) -> str:
    """Map a triage result to a queue priority.  Critical wins over non-critical."""
    if record is None:
        return PatientQueue.PRIORITY_NORMAL
    if _is_critical(record.triage_level, record.severity):
        return PatientQueue.PRIORITY_CRITICAL
    if _is_non_critical(record.triage_level, record.severity):
        return PatientQueue.PRIORITY_NON_CRITICAL
    return PatientQueue.PRIORITY_NORMAL


def severity_class(record: TriageRecord) -> Optional[str]:
    """History classification: non-critical is checked first, as on the triage board."""
    if record.triage_level == 1 or _non_critical_label(record.severity):
        return SEVERITY_NON_CRITICAL
    if _is_critical(record.triage_level, record.severity):
        return SEVERITY_CRITICAL
    return None


def _non_critical_label(severity: str) -> bool:
    sev = (severity or '').lower()
    return 'non-critical' in sev or 'non critical' in sev or 'green' in sev


def history(*, severity: Optional[str] = None, search: Optional[str] = None, patient_id: Optional[int] = None) -> list[TriageRecord]:
    qs = TriageRecord.objects.select_related('patient').order_by('-created_at', '-id')
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(patient__full_name__icontains=search) | Q(severity__icontains=search))
    records = list(qs)
    if severity in (SEVERITY_CRITICAL, SEVERITY_NON_CRITICAL):
        records = [r for r in records if severity_class(r) == severity]
    return records


def format_triage(record: TriageRecord) -> dict:
    return {
        'id': record.id,
        'patientId': record.patient_id,
        'name': record.name,
        **{field: getattr(record, column) for field, column in VITAL_COLUMNS.items()},
        'shockIndex': record.shock_index,
        'pulsePressure': record.pulse_pressure,
        'ppRatio': record.pp_ratio,
        'hrBtInteraction': record.hr_bt_interaction,
        'rrHrRatio': record.rr_hr_ratio,
        'isFever': record.is_fever,
        'isTachy': record.is_tachy,
        'isLowSbp': record.is_low_sbp,
        'isLowDbp': record.is_low_dbp,
        'isTachypnea': record.is_tachypnea,
        'triageLevel': record.triage_level,
        'severity': record.severity,
        'severityClass': severity_class(record),
        'createdAt': record.created_at.isoformat(),
        'updatedAt': record.updated_at.isoformat(),
    }
