import datetime

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from inpatient.models import Bed, Department, Patient, User, Ward


@pytest.fixture(autouse=True)
def _clear_cache():
    # Throttle counters and the dashboard summary live in the cache.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def department(db):
    return Department.objects.create(name='General Medicine')


@pytest.fixture
def ward(department):
    ward = Ward.objects.create(name='Ward A', department=department)
    for label in ('B101', 'B102', 'B103'):
        Bed.objects.create(ward=ward, bed_no=label)
    ward.bed_count = 3
    ward.save(update_fields=['bed_count'])
    return ward


@pytest.fixture
def bed(ward):
    return ward.beds.get(bed_no='B101')


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='P@ssw0rd1', role=User.ROLE_ADMIN)


@pytest.fixture
def doctor(db):
    return User.objects.create_user(username='doctor1', password='P@ssw0rd1', role=User.ROLE_DOCTOR,
                                    first_name='Ann', last_name='Perera')


@pytest.fixture
def nurse(db):
    return User.objects.create_user(username='nurse1', password='P@ssw0rd1', role=User.ROLE_NURSE)


def client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def doctor_client(doctor):
    return client_for(doctor)


@pytest.fixture
def nurse_client(nurse):
    return client_for(nurse)


@pytest.fixture
def make_patient(db):
    counter = {'n': 0}

    def make(**kwargs):
        counter['n'] += 1
        defaults = {
            'full_name': f'Patient {counter["n"]}',
            'dob': datetime.date(1980, 1, 1),
            'gender': 'FEMALE',
            'nic': f'{199000000000 + counter["n"]}',
        }
        defaults.update(kwargs)
        return Patient.objects.create(**defaults)

    return make


@pytest.fixture
def patient(make_patient):
    return make_patient(full_name='Kamala Silva', nic='198012345678')
