import pytest

from inpatient.models import PatientAdmission, PatientQueue, Prescription

pytestmark = pytest.mark.django_db

ITEMS = [
    {'medicineName': 'Paracetamol', 'dosage': '500mg', 'frequency': 'TDS', 'durationDays': 5},
    {'medicineName': 'Omeprazole', 'dosage': '20mg', 'frequency': 'OD'},
]


@pytest.fixture
def admission(patient, bed):
    bed.is_taken = True
    bed.save()
    return PatientAdmission.objects.create(patient=patient, bed=bed, status='ACTIVE')


def create(client, **payload):
    return client.post('/api/prescriptions', payload, format='json')


def test_doctor_writes_ipd_prescription(doctor_client, admission):
    resp = create(doctor_client, admissionId=admission.id, type='IPD', notes='post-op', items=ITEMS)
    assert resp.status_code == 201
    assert resp.data['status'] == 'DRAFT'
    assert resp.data['doctorName'] == 'Ann Perera'
    assert [i['medicineName'] for i in resp.data['items']] == ['Paracetamol', 'Omeprazole']
    assert resp.data['items'][1]['durationDays'] is None


def test_only_doctors_write(nurse_client, admission):
    resp = create(nurse_client, admissionId=admission.id, items=ITEMS)
    assert resp.status_code == 403
    assert not Prescription.objects.exists()


def test_ipd_needs_admission(doctor_client):
    resp = create(doctor_client, type='IPD', items=ITEMS)
    assert resp.status_code == 400


def test_admission_prescription_must_be_ipd(doctor_client, admission):
    queue = PatientQueue.objects.create(patient=admission.patient, status='OUTPATIENT')
    resp = create(doctor_client, admissionId=admission.id, queueId=queue.id, type='OPD', items=ITEMS)
    assert resp.status_code == 400


def test_opd_prescription_on_queue_entry(doctor_client, patient):
    queue = PatientQueue.objects.create(patient=patient, status='OUTPATIENT')
    resp = create(doctor_client, queueId=queue.id, type='OPD', items=ITEMS[:1])
    assert resp.status_code == 201
    assert resp.data['queueId'] == queue.id
    assert resp.data['admissionId'] is None


def test_discharged_admission_is_read_only(doctor_client, admission):
    rx_id = create(doctor_client, admissionId=admission.id, items=ITEMS).data['id']
    PatientAdmission.objects.filter(id=admission.id).update(status='DISCHARGED')

    resp = create(doctor_client, admissionId=admission.id, items=ITEMS)
    assert resp.status_code == 409
    assert resp.data['error']['code'] == 'admission_not_active'
    assert doctor_client.put(f'/api/prescriptions/{rx_id}', {'notes': 'x'}, format='json').status_code == 409
    assert doctor_client.delete(f'/api/prescriptions/{rx_id}').status_code == 409
    assert Prescription.objects.filter(id=rx_id).exists()


def test_update_replaces_items_and_moves_status_forward(doctor_client, admission):
    rx_id = create(doctor_client, admissionId=admission.id, items=ITEMS).data['id']
    resp = doctor_client.put(f'/api/prescriptions/{rx_id}', {
        'status': 'FINALIZED',
        'items': [{'medicineName': 'Amoxicillin', 'dosage': '250mg'}],
    }, format='json')
    assert resp.status_code == 200
    assert resp.data['status'] == 'FINALIZED'
    assert [i['medicineName'] for i in resp.data['items']] == ['Amoxicillin']

    back = doctor_client.put(f'/api/prescriptions/{rx_id}', {'status': 'DRAFT'}, format='json')
    assert back.status_code == 409
    assert back.data['error']['code'] == 'invalid_transition'


def test_listing(doctor_client, nurse_client, admission):
    rx_id = create(doctor_client, admissionId=admission.id, items=ITEMS).data['id']
    summaries = nurse_client.get('/api/prescriptions').data
    assert [r['id'] for r in summaries] == [rx_id]
    assert 'items' not in summaries[0]
    by_admission = nurse_client.get('/api/prescriptions', {'admissionId': admission.id}).data
    assert len(by_admission[0]['items']) == 2
    assert 'items' not in nurse_client.get(f'/api/prescriptions/{rx_id}').data
    assert len(nurse_client.get(f'/api/prescriptions/{rx_id}/detail').data['items']) == 2


def test_delete(doctor_client, admission):
    rx_id = create(doctor_client, admissionId=admission.id, items=ITEMS).data['id']
    assert doctor_client.delete(f'/api/prescriptions/{rx_id}').status_code == 204
    assert not Prescription.objects.exists()
