from django.core.cache import cache
from django.db.models import Count, Q, Sum

from inpatient.models import Department, Patient, PatientQueue, Ward
from inpatient.services import admissions, queue

CACHE_KEY = 'dashboard:summary'
CACHE_TTL = 30


def build_summary() -> dict:
    beds = Ward.objects.aggregate(total=Sum('bed_count'), occupied=Sum('occupied_beds'))
    total_beds = beds['total'] or 0
    occupied = beds['occupied'] or 0
    waiting = PatientQueue.objects.filter(queue.BLOCKING_Q).aggregate(
        total=Count('id'),
        critical=Count('id', filter=Q(priority=PatientQueue.PRIORITY_CRITICAL)),
    )
    return {
        'departments': Department.objects.count(),
        'wards': Ward.objects.count(),
        'beds': {
            'total': total_beds,
            'occupied': occupied,
            'free': total_beds - occupied,
            'occupancyRate': round(occupied / total_beds, 4) if total_beds else 0.0,
        },
        'patients': {
            'total': Patient.objects.count(),
            'active': Patient.objects.filter(is_active=True).count(),
        },
        'queue': {'pending': waiting['total'], 'critical': waiting['critical']},
        'admissions': admissions.stats(),
    }


def summary() -> dict:
    data = cache.get(CACHE_KEY)
    if data is None:
        data = build_summary()
        cache.set(CACHE_KEY, data, CACHE_TTL)
    return data


def invalidate() -> None:
    cache.delete(CACHE_KEY)
