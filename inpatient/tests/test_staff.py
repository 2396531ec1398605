import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from inpatient.models import AuditEvent, Specialization, User

pytestmark = pytest.mark.django_db

NEW_NURSE = {
    'username': 'nurse2',
    'password': 'Sup3rSecret',
    'role': 'nurse',
    'firstName': 'Nimali',
    'lastName': 'Fernando',
    'mobileNumber': '071-555 0101',
}


def test_admin_creates_staff_account(admin_client, department):
    resp = admin_client.post('/api/users', {**NEW_NURSE, 'departmentId': department.id}, format='json')
    assert resp.status_code == 201
    assert resp.data['role'] == 'nurse'
    assert resp.data['name'] == 'Nimali Fernando'
    assert resp.data['mobileNumber'] == '0715550101'
    assert resp.data['departmentId'] == department.id
    assert 'password' not in resp.data
    user = User.objects.get(username='nurse2')
    assert user.check_password('Sup3rSecret')
    assert AuditEvent.objects.filter(action='user_create', object_id=user.id).exists()


def test_created_account_can_log_in(admin_client):
    admin_client.post('/api/users', NEW_NURSE, format='json')
    r = APIClient().post(reverse('login_view'), {'username': 'nurse2', 'password': 'Sup3rSecret'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'nurse'


def test_username_is_unique_regardless_of_case(admin_client, nurse):
    resp = admin_client.post('/api/users', {**NEW_NURSE, 'username': 'NURSE1'}, format='json')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'username_taken'


def test_username_availability(admin_client, nurse):
    taken = admin_client.get('/api/users/username/validate/nurse1')
    assert taken.data == {'username': 'nurse1', 'taken': True}
    assert admin_client.get('/api/users/username/validate/nurse9').data['taken'] is False


def test_lookup_by_username(admin_client, doctor):
    resp = admin_client.get('/api/users/username/doctor1')
    assert resp.data['id'] == doctor.id
    assert resp.data['doctorDetail'] == {'licenseNo': '', 'specializations': []}
    assert admin_client.get('/api/users/username/nobody').status_code == 404


def test_only_admin_manages_staff(nurse_client, doctor_client):
    assert nurse_client.get('/api/users').status_code == 403
    assert doctor_client.post('/api/users', NEW_NURSE, format='json').status_code == 403


def test_list_filters(admin_client, admin_user, doctor, nurse):
    doctors = admin_client.get('/api/users', {'role': 'doctor'}).data
    assert [u['username'] for u in doctors] == ['doctor1']
    found = admin_client.get('/api/users', {'q': 'perera'}).data
    assert [u['id'] for u in found] == [doctor.id]


def test_update_and_role_change_clears_doctor_profile(admin_client, doctor):
    cardio = Specialization.objects.create(name='Cardiology')
    admin_client.put(f'/api/users/{doctor.id}/doctor-detail',
                     {'licenseNo': 'SLMC-1234', 'specializationIds': [cardio.id]}, format='json')
    resp = admin_client.put(f'/api/users/{doctor.id}', {'role': 'nurse', 'firstName': 'Anne'}, format='json')
    assert resp.status_code == 200
    assert resp.data['role'] == 'nurse'
    assert resp.data['firstName'] == 'Anne'
    assert 'doctorDetail' not in resp.data
    doctor.refresh_from_db()
    assert doctor.license_no == ''
    assert not doctor.specializations.exists()


def test_password_change(admin_client, nurse):
    assert admin_client.put(f'/api/users/{nurse.id}', {'password': 'An0therOne'}, format='json').status_code == 200
    nurse.refresh_from_db()
    assert nurse.check_password('An0therOne')


def test_deactivate_revokes_access(admin_client, nurse):
    data = APIClient().post(reverse('login_view'), {'username': 'nurse1', 'password': 'P@ssw0rd1'},
                            format='json').data
    assert admin_client.delete(f'/api/users/{nurse.id}').status_code == 204
    nurse.refresh_from_db()
    assert nurse.is_active is False
    assert User.objects.filter(id=nurse.id).exists()

    legacy = APIClient()
    legacy.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert legacy.get(reverse('me_view')).status_code == 401
    refreshed = APIClient().post(reverse('jwt_refresh_view'), {'refresh': data['jwt_refresh']}, format='json')
    assert refreshed.status_code == 401

    again = admin_client.delete(f'/api/users/{nurse.id}')
    assert again.status_code == 409
    assert again.data['error']['code'] == 'user_inactive'


def test_admin_cannot_lock_themselves_out(admin_client, admin_user):
    assert admin_client.delete(f'/api/users/{admin_user.id}').status_code == 409
    demote = admin_client.put(f'/api/users/{admin_user.id}', {'role': 'nurse'}, format='json')
    assert demote.status_code == 409
    assert demote.data['error']['code'] == 'own_account'
    admin_user.refresh_from_db()
    assert admin_user.role == 'admin'
    assert admin_user.is_active is True


def test_doctor_detail(admin_client, doctor, nurse):
    cardio = Specialization.objects.create(name='Cardiology')
    neuro = Specialization.objects.create(name='Neurology')
    resp = admin_client.put(f'/api/users/{doctor.id}/doctor-detail',
                            {'licenseNo': 'SLMC-1234', 'specializationIds': [neuro.id, cardio.id]}, format='json')
    assert resp.status_code == 200
    detail = resp.data['doctorDetail']
    assert detail['licenseNo'] == 'SLMC-1234'
    assert [s['name'] for s in detail['specializations']] == ['Cardiology', 'Neurology']

    unknown = admin_client.put(f'/api/users/{doctor.id}/doctor-detail', {'specializationIds': [999]}, format='json')
    assert unknown.status_code == 400
    assert doctor.specializations.count() == 2

    not_doctor = admin_client.put(f'/api/users/{nurse.id}/doctor-detail', {'licenseNo': 'X'}, format='json')
    assert not_doctor.status_code == 409
    assert not_doctor.data['error']['code'] == 'not_a_doctor'


def test_specializations(admin_client, nurse_client, doctor):
    created = admin_client.post('/api/specializations', {'name': 'Cardiology'}, format='json')
    assert created.status_code == 201
    spec_id = created.data['id']
    assert admin_client.post('/api/specializations', {'name': 'Cardiology'}, format='json').status_code == 409
    assert nurse_client.post('/api/specializations', {'name': 'Oncology'}, format='json').status_code == 403
    assert [s['name'] for s in nurse_client.get('/api/specializations').data] == ['Cardiology']

    renamed = admin_client.put(f'/api/specializations/{spec_id}', {'name': 'Cardiac Care'}, format='json')
    assert renamed.data['name'] == 'Cardiac Care'

    doctor.specializations.add(spec_id)
    in_use = admin_client.delete(f'/api/specializations/{spec_id}')
    assert in_use.status_code == 409
    assert in_use.data['error']['code'] == 'specialization_in_use'
    doctor.specializations.clear()
    assert admin_client.delete(f'/api/specializations/{spec_id}').status_code == 204


def test_roles(nurse_client):
    assert [r['name'] for r in nurse_client.get('/api/roles').data] == ['admin', 'doctor', 'nurse']
