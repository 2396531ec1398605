from io import StringIO

import pytest
from django.core.management import call_command

from inpatient.models import Bed, Department, PatientAdmission, User, Ward
from inpatient.services.wards import create_ward, reconcile_ward_counts

pytestmark = pytest.mark.django_db


def hold(bed, patient, status='ACTIVE'):
    bed.is_taken = True
    bed.save()
    return PatientAdmission.objects.create(patient=patient, bed=bed, status=status)


def test_create_ward_with_bed_batch(admin_client, department):
    resp = admin_client.post('/api/wards', {
        'name': 'Ward C', 'departmentId': department.id, 'beds': {'count': 3, 'prefix': 'W-'},
    }, format='json')
    assert resp.status_code == 201
    assert resp.data['bedCount'] == 3
    assert resp.data['occupiedBeds'] == 0
    assert resp.data['departmentName'] == 'General Medicine'
    assert 'warning' not in resp.data
    beds = admin_client.get(f"/api/wards/{resp.data['id']}/beds").data
    assert [b['bedNo'] for b in beds] == ['W-1', 'W-2', 'W-3']


def test_failed_bed_batch_keeps_ward_with_warning(department, settings):
    settings.BED_BATCH_MAX = 5
    ward, warning = create_ward(name='Overflow', department=department, beds={'count': 6})
    assert Ward.objects.filter(id=ward.id).exists()
    assert ward.bed_count == 0
    assert warning.startswith('Ward created, but beds were not added')


def test_duplicate_ward_name(admin_client, ward):
    resp = admin_client.post('/api/wards', {'name': 'Ward A', 'departmentId': ward.department_id}, format='json')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'ward_exists'


def test_nurse_reads_but_cannot_write(nurse_client, ward):
    assert nurse_client.get('/api/wards').status_code == 200
    resp = nurse_client.post('/api/wards', {'name': 'X', 'departmentId': ward.department_id}, format='json')
    assert resp.status_code == 403
    assert nurse_client.post(f'/api/beds/batch/{ward.id}', {'count': 2}, format='json').status_code == 403


def test_batch_is_all_or_nothing(admin_client, ward):
    # B101 exists already, so the whole batch is refused.
    resp = admin_client.post(f'/api/beds/batch/{ward.id}',
                             [{'bedNo': 'B104'}, {'bedNo': 'B101'}], format='json')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'bed_exists'
    assert resp.data['error']['bedNos'] == ['B101']
    assert not Bed.objects.filter(bed_no='B104').exists()


def test_batch_rejects_duplicate_labels(admin_client, ward):
    resp = admin_client.post(f'/api/beds/batch/{ward.id}',
                             [{'bedNo': 'X1'}, {'bedNo': 'X1'}], format='json')
    assert resp.status_code == 409
    assert ward.beds.count() == 3


def test_sequential_batch_updates_aggregates(admin_client, ward):
    resp = admin_client.post(f'/api/beds/batch/{ward.id}', {'count': 2, 'prefix': 'E-'}, format='json')
    assert resp.status_code == 201
    assert [b['bedNo'] for b in resp.data] == ['E-1', 'E-2']
    ward.refresh_from_db()
    assert ward.bed_count == 5


def test_batch_size_limit(admin_client, ward, settings):
    settings.BED_BATCH_MAX = 2
    resp = admin_client.post(f'/api/beds/batch/{ward.id}', {'count': 3}, format='json')
    assert resp.status_code == 400
    assert ward.beds.count() == 3


def test_lookup_by_ward_and_label(nurse_client, bed):
    resp = nurse_client.get('/api/beds', {'wardId': bed.ward_id, 'bedNo': 'B101'})
    assert resp.data['id'] == bed.id
    assert nurse_client.get('/api/beds', {'wardId': bed.ward_id, 'bedNo': 'Z9'}).status_code == 404
    assert nurse_client.get('/api/beds', {'bedNo': 'B101'}).status_code == 400
    assert len(nurse_client.get('/api/beds', {'wardId': bed.ward_id}).data) == 3


def test_create_single_bed(admin_client, ward):
    resp = admin_client.post('/api/beds', {'bedNo': 'B110', 'wardId': ward.id}, format='json')
    assert resp.status_code == 201
    assert resp.data['isTaken'] is False
    clash = admin_client.post('/api/beds', {'bedNo': 'B110', 'wardId': ward.id}, format='json')
    assert clash.status_code == 409
    assert clash.data['error']['code'] == 'bed_exists'


def test_taken_bed_cannot_be_deleted(admin_client, bed, patient):
    hold(bed, patient)
    resp = admin_client.delete(f'/api/beds/{bed.id}')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'bed_taken'
    assert Bed.objects.filter(id=bed.id).exists()


def test_bed_with_history_cannot_be_deleted(admin_client, bed, patient):
    PatientAdmission.objects.create(patient=patient, bed=bed, status='DISCHARGED')
    resp = admin_client.delete(f'/api/beds/{bed.id}')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'bed_in_use'


def test_free_bed_delete_updates_ward(admin_client, ward):
    free = ward.beds.get(bed_no='B103')
    assert admin_client.delete(f'/api/beds/{free.id}').status_code == 204
    ward.refresh_from_db()
    assert ward.bed_count == 2


def test_occupancy_of_held_bed_cannot_be_flipped(admin_client, bed, patient):
    hold(bed, patient)
    resp = admin_client.put(f'/api/beds/{bed.id}', {'isTaken': False}, format='json')
    assert resp.status_code == 409
    bed.refresh_from_db()
    assert bed.is_taken is True


def test_free_bed_cannot_be_marked_taken(admin_client, nurse_client, ward, bed, patient):
    resp = admin_client.put(f'/api/beds/{bed.id}', {'isTaken': True}, format='json')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'invalid_transition'
    bed.refresh_from_db()
    ward.refresh_from_db()
    assert bed.is_taken is False
    assert ward.occupied_beds == 0
    admit = nurse_client.post('/api/patient-admissions', {'patientId': patient.id, 'bedId': bed.id}, format='json')
    assert admit.status_code == 201


def test_unchanged_occupancy_is_accepted(admin_client, bed):
    resp = admin_client.put(f'/api/beds/{bed.id}', {'bedNo': 'B101X', 'isTaken': False}, format='json')
    assert resp.status_code == 200
    assert resp.data['bedNo'] == 'B101X'


def test_pending_discharge_still_holds_bed(admin_client, bed, patient):
    hold(bed, patient, status='DISCHARGED')
    resp = admin_client.put(f'/api/beds/{bed.id}', {'isTaken': False}, format='json')
    assert resp.status_code == 409


def test_relabel_held_bed(admin_client, bed, patient):
    hold(bed, patient)
    resp = admin_client.put(f'/api/beds/{bed.id}', {'bedNo': 'B101A'}, format='json')
    assert resp.status_code == 200
    assert resp.data['bedNo'] == 'B101A'
    assert resp.data['isTaken'] is True


def test_department_in_use(admin_client, ward):
    resp = admin_client.delete(f'/api/departments/{ward.department_id}')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'department_in_use'


def test_department_crud(admin_client, doctor_client):
    created = admin_client.post('/api/departments', {'name': 'Cardiology'}, format='json')
    assert created.status_code == 201
    dept_id = created.data['id']
    assert admin_client.put(f'/api/departments/{dept_id}', {'name': 'Cardiology East'}, format='json').data['name'] \
        == 'Cardiology East'
    assert doctor_client.delete(f'/api/departments/{dept_id}').status_code == 403
    assert admin_client.delete(f'/api/departments/{dept_id}').status_code == 204
    assert not Department.objects.filter(id=dept_id).exists()


def test_ward_with_taken_bed_cannot_be_deleted(admin_client, ward, patient):
    hold(ward.beds.first(), patient)
    resp = admin_client.delete(f'/api/wards/{ward.id}')
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'ward_in_use'


def test_reconcile_fixes_drift(ward):
    Ward.objects.filter(id=ward.id).update(bed_count=10, occupied_beds=4)
    drifted = reconcile_ward_counts()
    assert drifted == [{'wardId': ward.id, 'before': (10, 4), 'after': (3, 0)}]
    ward.refresh_from_db()
    assert (ward.bed_count, ward.occupied_beds) == (3, 0)
    assert reconcile_ward_counts() == []


def test_reconcile_command(ward):
    Ward.objects.filter(id=ward.id).update(occupied_beds=2)
    out = StringIO()
    call_command('reconcile_wards', stdout=out)
    assert '1 ward(s) corrected.' in out.getvalue()


def test_seed_command_is_idempotent():
    call_command('seed_ward_data', stdout=StringIO())
    call_command('seed_ward_data', stdout=StringIO())
    assert Ward.objects.get(name='Ward A').bed_count == 10
    assert set(User.objects.values_list('role', flat=True)) == {'admin', 'doctor', 'nurse'}


def test_dashboard_summary(nurse_client, ward, patient):
    hold(ward.beds.first(), patient)
    Ward.objects.filter(id=ward.id).update(occupied_beds=1)
    data = nurse_client.get('/api/dashboard').data
    assert data['beds'] == {'total': 3, 'occupied': 1, 'free': 2, 'occupancyRate': 0.3333}
    assert data['admissions']['active'] == 1
    assert data['patients'] == {'total': 1, 'active': 1}
