"""
Admission workflow through the API: admit, doctor discharge, nurse
confirmation and in-place edits, with the bed exclusivity and one active
admission per patient rules checked after every step.
"""
import datetime

from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from inpatient.models import AuditEvent, Bed, Department, Patient, PatientAdmission, PatientQueue, User, Ward
from inpatient.services.admissions import latest_status, sort_by_recency


class AdmissionWorkflowTests(APITestCase):
    def setUp(self) -> None:
        dept = Department.objects.create(name='General Medicine')
        self.ward = Ward.objects.create(name='Ward A', department=dept)
        self.other_ward = Ward.objects.create(name='Ward B', department=dept)
        self.b101 = Bed.objects.create(ward=self.ward, bed_no='B101')
        self.b102 = Bed.objects.create(ward=self.ward, bed_no='B102')
        self.c201 = Bed.objects.create(ward=self.other_ward, bed_no='C201')

        self.admin_user = User.objects.create_user(username='admin1', password='x', role='admin')
        self.doctor = User.objects.create_user(username='doctor1', password='x', role='doctor')
        self.nurse = User.objects.create_user(username='nurse1', password='x', role='nurse')

        self.patient = Patient.objects.create(
            full_name='Kamala Silva', dob=datetime.date(1980, 5, 1), gender='FEMALE', nic='198012345678',
        )
        self.other_patient = Patient.objects.create(
            full_name='Nimal Perera', dob=datetime.date(1975, 2, 3), gender='MALE', nic='751234567V',
        )

    def authenticate(self, user: User) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def admit(self, patient=None, bed=None, user=None, **extra):
        client = self.authenticate(user or self.nurse)
        payload = {'patientId': (patient or self.patient).id, 'bedId': (bed or self.b101).id, **extra}
        return client.post('/api/patient-admissions', payload, format='json')

    def test_nurse_admits_patient_into_free_bed(self):
        resp = self.admit()
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['status'], 'ACTIVE')
        self.assertEqual(resp.data['bedNo'], 'B101')
        self.assertEqual(resp.data['wardName'], 'Ward A')
        self.assertIsNone(resp.data['dischargedAt'])
        self.b101.refresh_from_db()
        self.ward.refresh_from_db()
        self.assertTrue(self.b101.is_taken)
        self.assertEqual((self.ward.bed_count, self.ward.occupied_beds), (2, 1))
        self.assertTrue(AuditEvent.objects.filter(action='admission_admit', object_id=resp.data['id']).exists())

    def test_taken_bed_is_rejected_and_nothing_changes(self):
        self.assertEqual(self.admit().status_code, status.HTTP_201_CREATED)
        resp = self.admit(patient=self.other_patient)
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(resp.data['ok'])
        self.assertEqual(resp.data['error']['code'], 'bed_taken')
        self.assertEqual(PatientAdmission.objects.count(), 1)
        self.assertFalse(PatientAdmission.objects.filter(patient=self.other_patient).exists())

    def test_patient_cannot_hold_two_active_admissions(self):
        self.admit()
        resp = self.admit(bed=self.b102)
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'active_admission_exists')
        self.b102.refresh_from_db()
        self.assertFalse(self.b102.is_taken)

    def test_archived_patient_cannot_be_admitted(self):
        self.patient.is_active = False
        self.patient.save()
        resp = self.admit()
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'patient_inactive')

    def test_unique_constraint_reports_bed_conflict(self):
        # Bed flag out of step with the admissions table: the partial unique
        # constraint still refuses a second ACTIVE admission for the bed.
        PatientAdmission.objects.create(patient=self.other_patient, bed=self.b101, status='ACTIVE')
        resp = self.admit()
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'bed_taken')
        self.assertFalse(PatientAdmission.objects.filter(patient=self.patient).exists())

    def test_doctor_cannot_admit(self):
        resp = self.admit(user=self.doctor)
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(PatientAdmission.objects.exists())

    def test_admit_closes_the_named_queue_entry(self):
        entry = PatientQueue.objects.create(patient=self.patient, status='WAITING')
        resp = self.admit(queueId=entry.id)
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['queueId'], entry.id)
        entry.refresh_from_db()
        self.assertEqual(entry.status, 'ADMITTED')
        self.assertTrue(entry.admitted)
        self.assertEqual(entry.transitions.last().to_status, 'ADMITTED')

    def test_admit_rejects_queue_entry_of_another_patient(self):
        entry = PatientQueue.objects.create(patient=self.other_patient, status='WAITING')
        resp = self.admit(queueId=entry.id)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['code'], 'invalid')
        self.b101.refresh_from_db()
        self.assertFalse(self.b101.is_taken)

    def test_full_discharge_cycle(self):
        admission_id = self.admit().data['id']
        doctor = self.authenticate(self.doctor)
        resp = doctor.post(f'/api/patient-admissions/{admission_id}/discharge',
                           {'dischargeNotes': 'stable, ambulatory'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['status'], 'DISCHARGED')
        self.assertIsNone(resp.data['dischargedAt'])
        self.assertTrue(resp.data['pendingNurseConfirm'])
        self.assertEqual(resp.data['blockedReason']['discharge'], 'Doctor discharged. Nurse confirmation required.')
        self.assertIsNone(resp.data['blockedReason']['confirm'])
        # Bed stays held until the nurse confirms.
        self.b101.refresh_from_db()
        self.assertTrue(self.b101.is_taken)

        nurse = self.authenticate(self.nurse)
        resp = nurse.post(f'/api/patient-admissions/{admission_id}/confirm-discharge',
                          {'notes': 'transport arranged'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(resp.data['dischargedAt'])
        self.assertFalse(resp.data['pendingNurseConfirm'])
        self.assertEqual(resp.data['dischargeNotes'], 'stable, ambulatory\nNurse: transport arranged')
        self.assertEqual(resp.data['blockedReason']['confirm'], 'Already confirmed by nurse.')
        self.b101.refresh_from_db()
        self.ward.refresh_from_db()
        self.assertFalse(self.b101.is_taken)
        self.assertEqual(self.ward.occupied_beds, 0)

        again = nurse.post(f'/api/patient-admissions/{admission_id}/confirm-discharge', {}, format='json')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['error']['code'], 'invalid_transition')

        # The bed can be reused once released.
        self.assertEqual(self.admit(patient=self.other_patient).status_code, status.HTTP_201_CREATED)

    def test_discharge_requires_notes(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.doctor).post(
            f'/api/patient-admissions/{admission_id}/discharge', {'dischargeNotes': '  '}, format='json'
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(PatientAdmission.objects.get(id=admission_id).status, 'ACTIVE')

    def test_nurse_cannot_discharge(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.nurse).post(
            f'/api/patient-admissions/{admission_id}/discharge', {'dischargeNotes': 'ok'}, format='json'
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_second_doctor_discharge_is_rejected(self):
        admission_id = self.admit().data['id']
        doctor = self.authenticate(self.doctor)
        doctor.post(f'/api/patient-admissions/{admission_id}/discharge', {'dischargeNotes': 'ok'}, format='json')
        resp = doctor.post(f'/api/patient-admissions/{admission_id}/discharge',
                           {'dischargeNotes': 'again'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'admission_not_active')
        self.assertEqual(PatientAdmission.objects.get(id=admission_id).discharge_notes, 'ok')

    def test_confirm_before_doctor_discharge_is_rejected(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.nurse).post(
            f'/api/patient-admissions/{admission_id}/confirm-discharge', {}, format='json'
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'invalid_transition')

    def test_edit_moves_patient_to_free_bed_in_another_ward(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.doctor).put(
            f'/api/patient-admissions/{admission_id}', {'bedId': self.c201.id}, format='json'
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['bedId'], self.c201.id)
        self.assertEqual(resp.data['status'], 'ACTIVE')
        self.b101.refresh_from_db()
        self.c201.refresh_from_db()
        self.ward.refresh_from_db()
        self.other_ward.refresh_from_db()
        self.assertFalse(self.b101.is_taken)
        self.assertTrue(self.c201.is_taken)
        self.assertEqual((self.ward.occupied_beds, self.other_ward.occupied_beds), (0, 1))

    def test_edit_into_taken_bed_is_rejected(self):
        admission_id = self.admit().data['id']
        self.admit(patient=self.other_patient, bed=self.b102)
        resp = self.authenticate(self.admin_user).put(
            f'/api/patient-admissions/{admission_id}', {'bedId': self.b102.id}, format='json'
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'bed_taken')
        self.assertEqual(PatientAdmission.objects.get(id=admission_id).bed_id, self.b101.id)

    def test_edit_with_discharge_needs_doctor(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.admin_user).put(
            f'/api/patient-admissions/{admission_id}',
            {'bedId': self.b102.id, 'status': 'DISCHARGED', 'dischargeNotes': 'done'},
            format='json',
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        admission = PatientAdmission.objects.get(id=admission_id)
        self.assertEqual((admission.status, admission.bed_id), ('ACTIVE', self.b101.id))

    def test_edit_with_discharge_by_doctor(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.doctor).put(
            f'/api/patient-admissions/{admission_id}',
            {'status': 'DISCHARGED', 'dischargeNotes': 'stable, ambulatory'},
            format='json',
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data['pendingNurseConfirm'])

    def test_nurse_cannot_edit(self):
        admission_id = self.admit().data['id']
        resp = self.authenticate(self.nurse).put(
            f'/api/patient-admissions/{admission_id}', {'bedId': self.b102.id}, format='json'
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_tabs_and_stats(self):
        first = self.admit().data['id']
        self.admit(patient=self.other_patient, bed=self.b102)
        self.authenticate(self.doctor).post(f'/api/patient-admissions/{first}/discharge',
                                            {'dischargeNotes': 'ok'}, format='json')
        client = self.authenticate(self.nurse)

        pending = client.get('/api/patient-admissions', {'tab': 'PENDING'})
        self.assertEqual([a['id'] for a in pending.data], [first])
        self.assertEqual(client.get('/api/patient-admissions', {'tab': 'DISCHARGED'}).data, [])
        everything = client.get('/api/patient-admissions')
        # ACTIVE before DISCHARGED.
        self.assertEqual([a['status'] for a in everything.data], ['ACTIVE', 'DISCHARGED'])

        stats = client.get('/api/patient-admissions/stats').data
        self.assertEqual(stats['active'], 1)
        self.assertEqual(stats['pendingNurseConfirm'], 1)
        self.assertEqual(stats['discharged'], 0)

    def test_has_active_endpoint(self):
        client = self.authenticate(self.nurse)
        url = f'/api/patient-admissions/{self.patient.id}/has-active'
        self.assertFalse(client.get(url).data['hasActive'])
        self.admit()
        self.assertEqual(client.get(url).data, {'patientId': self.patient.id, 'hasActive': True})


class LatestStatusTests(APITestCase):
    def test_empty_history(self):
        self.assertIsNone(latest_status([]))

    def test_newest_event_wins(self):
        now = timezone.now()
        old = PatientAdmission(id=1, status='DISCHARGED', admitted_at=now - datetime.timedelta(days=10),
                               discharged_at=now - datetime.timedelta(days=8))
        current = PatientAdmission(id=2, status='ACTIVE', admitted_at=now - datetime.timedelta(days=1))
        self.assertEqual(latest_status(sort_by_recency([old, current])), 'ACTIVE')

    def test_discharge_date_counts_as_recency(self):
        now = timezone.now()
        transferred = PatientAdmission(id=1, status='TRANSFERRED', admitted_at=now - datetime.timedelta(days=5))
        discharged = PatientAdmission(id=2, status='DISCHARGED', admitted_at=now - datetime.timedelta(days=6),
                                      discharged_at=now - datetime.timedelta(hours=2))
        self.assertEqual(latest_status(sort_by_recency([transferred, discharged])), 'DISCHARGED')
