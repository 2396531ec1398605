import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from inpatient.models import AuditEvent, User

pytestmark = pytest.mark.django_db


def login(client, username='nurse1', password='P@ssw0rd1', **extra):
    return client.post(reverse('login_view'), {'username': username, 'password': password, **extra}, format='json')


def test_login_returns_token_and_jwt_pair(nurse):
    r = login(APIClient())
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'nurse'
    assert r.data['user']['username'] == 'nurse1'
    assert AuditEvent.objects.filter(action='login', user=nurse, detail__result='ok').exists()


def test_role_in_payload_is_ignored(nurse):
    r = login(APIClient(), role='admin')
    assert r.data['role'] == 'nurse'
    nurse.refresh_from_db()
    assert nurse.role == 'nurse'


def test_wrong_password(nurse):
    r = login(APIClient(), password='nope')
    assert r.status_code == 401
    assert r.data['error']['code'] == 'authentication_failed'
    assert 'token' not in r.data
    assert AuditEvent.objects.filter(action='login', user=None, detail__result='fail').exists()


def test_missing_password():
    r = APIClient().post(reverse('login_view'), {'username': 'x'}, format='json')
    assert r.status_code == 400


def test_drf_token_and_jwt_both_authenticate(doctor):
    data = login(APIClient(), username='doctor1').data
    by_token = APIClient()
    by_token.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert by_token.get(reverse('me_view')).data['role'] == 'doctor'
    by_jwt = APIClient()
    by_jwt.credentials(HTTP_AUTHORIZATION=f"Bearer {data['jwt_access']}")
    assert by_jwt.get(reverse('me_view')).data['username'] == 'doctor1'


def test_refresh_and_logout(nurse):
    data = login(APIClient()).data
    client = APIClient()
    refreshed = client.post(reverse('jwt_refresh_view'), {'refresh': data['jwt_refresh']}, format='json')
    assert refreshed.status_code == 200
    assert refreshed.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refreshed.data['jwt_access']}")
    out = client.post(reverse('jwt_logout_view'), {'refresh': data['jwt_refresh']}, format='json')
    assert out.status_code == 200
    assert out.data['blacklisted'] == 1

    again = APIClient().post(reverse('jwt_refresh_view'), {'refresh': data['jwt_refresh']}, format='json')
    assert again.status_code == 401
    legacy = APIClient()
    legacy.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert legacy.get(reverse('me_view')).status_code == 401


def test_refresh_with_garbage_token():
    r = APIClient().post(reverse('jwt_refresh_view'), {'refresh': 'not-a-token'}, format='json')
    assert r.status_code == 401


def test_staff_without_clinical_role_is_forbidden(db):
    outsider = User.objects.create_user(username='ops', password='P@ssw0rd1', role='')
    client = APIClient()
    client.force_authenticate(user=outsider)
    assert client.get('/api/patient-queue').status_code == 403


def test_healthz(client, db):
    r = client.get('/healthz')
    assert r.status_code == 200
    assert r.json()['ok'] is True
