"""
Database models for the ward admission backend.

The models cover the physical layout of the hospital (departments, wards
and beds), the patient register, triage records produced by the prediction
service, the triage queue, admissions and their prescriptions.  Field names
are snake_case here; the API layer exposes them in camelCase to match the
front-end contract.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class Department(models.Model):
    """A clinical department.  Wards reference it by ``department_id``."""
    name = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class Specialization(models.Model):
    """A clinical specialty that doctors can be tagged with."""
    name = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """Staff account with a single role.

    Roles mirror the front-end dashboards: 'admin', 'doctor' and 'nurse'.
    A user may optionally be attached to a department.  ``license_no`` and
    ``specializations`` are only meaningful for doctors.
    """
    ROLE_ADMIN = 'admin'
    ROLE_DOCTOR = 'doctor'
    ROLE_NURSE = 'nurse'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_NURSE, 'Nurse'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_NURSE, db_index=True)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff'
    )
    mobile_number = models.CharField(max_length=20, blank=True)
    license_no = models.CharField(max_length=64, blank=True)
    specializations = models.ManyToManyField(Specialization, blank=True, related_name='doctors')

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Ward(models.Model):
    """A ward inside a department.

    ``bed_count`` and ``occupied_beds`` are denormalised from the beds that
    reference this ward.  They are kept in step by
    :func:`inpatient.services.wards.refresh_ward_counts` and are meant for
    display only; occupancy decisions always read :attr:`Bed.is_taken`.
    """
    name = models.CharField(max_length=255)
    department = models.ForeignKey(Department, on_delete=models.PROTECT, related_name='wards')
    bed_count = models.PositiveIntegerField(default=0)
    occupied_beds = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('department', 'name')]

    def __str__(self) -> str:
        return f"{self.name} ({self.department_id})"


class Bed(models.Model):
    ward = models.ForeignKey(Ward, on_delete=models.CASCADE, related_name='beds')
    bed_no = models.CharField(max_length=50)
    # Flipped only by the admission workflow once a bed exists.
    is_taken = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('ward', 'bed_no')]

    def __str__(self) -> str:
        return f"{self.bed_no} in ward {self.ward_id}"


class Patient(models.Model):
    """Patient demographic record.

    ``is_active`` doubles as the soft-delete flag: archived patients are
    hidden from the active listings used when admitting.
    """
    full_name = models.CharField(max_length=255)
    dob = models.DateField()
    gender = models.CharField(max_length=16)
    nic = models.CharField(max_length=12, unique=True, null=True, blank=True)
    blood_group = models.CharField(max_length=5, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.full_name} (#{self.id})"


class TriageRecord(models.Model):
    """Immutable result of a triage prediction.

    The vital-sign inputs are stored alongside the features derived from
    them and the level/severity returned by the prediction model.
    """
    patient = models.ForeignKey(
        Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_records'
    )
    name = models.CharField(max_length=255, blank=True)
    sex = models.PositiveSmallIntegerField()
    arrival_mode = models.PositiveSmallIntegerField()
    injury = models.PositiveSmallIntegerField()
    mental = models.PositiveSmallIntegerField()
    pain = models.PositiveSmallIntegerField()
    age = models.PositiveSmallIntegerField()
    sbp = models.PositiveSmallIntegerField()
    dbp = models.PositiveSmallIntegerField()
    hr = models.PositiveSmallIntegerField()
    rr = models.PositiveSmallIntegerField()
    bt = models.FloatField()
    shock_index = models.FloatField(null=True, blank=True)
    pulse_pressure = models.FloatField(null=True, blank=True)
    pp_ratio = models.FloatField(null=True, blank=True)
    hr_bt_interaction = models.FloatField(null=True, blank=True)
    rr_hr_ratio = models.FloatField(null=True, blank=True)
    is_fever = models.BooleanField(default=False)
    is_tachy = models.BooleanField(default=False)
    is_low_sbp = models.BooleanField(default=False)
    is_low_dbp = models.BooleanField(default=False)
    is_tachypnea = models.BooleanField(default=False)
    triage_level = models.SmallIntegerField(null=True, blank=True)
    severity = models.CharField(max_length=50, blank=True)
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_records'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'created_at'], name='triage_patient_created_idx')]

    def __str__(self) -> str:
        return f"Triage #{self.id} level={self.triage_level} ({self.severity})"


class PatientQueue(models.Model):
    PRIORITY_CRITICAL = 'CRITICAL'
    PRIORITY_NORMAL = 'NORMAL'
    PRIORITY_NON_CRITICAL = 'NON_CRITICAL'
    PRIORITY_CHOICES = [
        (PRIORITY_CRITICAL, 'Critical'),
        (PRIORITY_NORMAL, 'Normal'),
        (PRIORITY_NON_CRITICAL, 'Non critical'),
    ]

    STATUS_WAITING = 'WAITING'
    STATUS_ADMITTED = 'ADMITTED'
    STATUS_OUTPATIENT = 'OUTPATIENT'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_WAITING, 'Waiting'),
        (STATUS_ADMITTED, 'Admitted'),
        (STATUS_OUTPATIENT, 'Outpatient'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='queue_entries')
    triage = models.ForeignKey(
        TriageRecord, null=True, blank=True, on_delete=models.SET_NULL, related_name='queue_entries'
    )
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=PRIORITY_NORMAL, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_WAITING, db_index=True)
    # ADMITTED with admitted=False means the doctor decided to admit but no
    # bed has been assigned yet.
    admitted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'status'], name='queue_patient_status_idx')]

    def __str__(self) -> str:
        return f"Queue #{self.id} p={self.patient_id} {self.status}/{self.priority}"


class QueueTransition(models.Model):
    """Records a status change of a queue entry."""
    entry = models.ForeignKey(PatientQueue, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16, null=True, blank=True)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='queue_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.entry_id}: {self.from_status} → {self.to_status}"


class PatientAdmission(models.Model):
    """A patient's occupancy of a bed.

    DISCHARGED covers two phases: pending (``discharged_at`` empty, bed
    still held) after the doctor's decision, and final once a nurse has
    confirmed the handover.
    """
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_DISCHARGED = 'DISCHARGED'
    STATUS_TRANSFERRED = 'TRANSFERRED'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_DISCHARGED, 'Discharged'),
        (STATUS_TRANSFERRED, 'Transferred'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='admissions')
    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, related_name='admissions')
    queue = models.ForeignKey(
        PatientQueue, null=True, blank=True, on_delete=models.SET_NULL, related_name='admissions'
    )
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    admitted_at = models.DateTimeField(default=timezone.now)
    discharged_at = models.DateTimeField(null=True, blank=True)
    discharge_notes = models.TextField(blank=True)
    admitted_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='admissions_created'
    )
    discharged_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='discharges_decided'
    )
    confirmed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='discharges_confirmed'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['patient'],
                condition=models.Q(status='ACTIVE'),
                name='uniq_active_admission_per_patient',
            ),
            models.UniqueConstraint(
                fields=['bed'],
                condition=models.Q(status='ACTIVE'),
                name='uniq_active_admission_per_bed',
            ),
        ]
        indexes = [models.Index(fields=['status', 'admitted_at'], name='admission_status_admitted_idx')]

    @property
    def pending_nurse_confirm(self) -> bool:
        return self.status == self.STATUS_DISCHARGED and self.discharged_at is None

    def __str__(self) -> str:
        return f"Admission #{self.id} p={self.patient_id} bed={self.bed_id} {self.status}"


class Prescription(models.Model):
    TYPE_OPD = 'OPD'
    TYPE_IPD = 'IPD'
    TYPE_CHOICES = [(TYPE_OPD, 'Outpatient'), (TYPE_IPD, 'Inpatient')]

    STATUS_DRAFT = 'DRAFT'
    STATUS_FINALIZED = 'FINALIZED'
    STATUS_DISPENSED = 'DISPENSED'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_FINALIZED, 'Finalized'),
        (STATUS_DISPENSED, 'Dispensed'),
    ]

    admission = models.ForeignKey(
        PatientAdmission, null=True, blank=True, on_delete=models.CASCADE, related_name='prescriptions'
    )
    queue = models.ForeignKey(
        PatientQueue, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions'
    )
    doctor = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='prescriptions')
    type = models.CharField(max_length=8, choices=TYPE_CHOICES, default=TYPE_IPD)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Rx #{self.id} {self.type} a={self.admission_id}"


class PrescriptionItem(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='items')
    medicine_name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=100, blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    duration_days = models.PositiveIntegerField(null=True, blank=True)
    instructions = models.TextField(blank=True)

    def __str__(self) -> str:
        return f"{self.medicine_name} ({self.prescription_id})"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]
