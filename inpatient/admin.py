"""Django admin registrations for the ward admission models."""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    AuditEvent,
    Bed,
    Department,
    Patient,
    PatientAdmission,
    PatientQueue,
    Prescription,
    PrescriptionItem,
    QueueTransition,
    Specialization,
    TriageRecord,
    User,
    Ward,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'role', 'department', 'is_staff', 'is_active')
    list_filter = ('role', 'department', 'is_active')
    search_fields = ('username', 'first_name', 'last_name')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Ward access', {'fields': ('role', 'department', 'mobile_number')}),
        ('Doctor profile', {'fields': ('license_no', 'specializations')}),
    )
    filter_horizontal = BaseUserAdmin.filter_horizontal + ('specializations',)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)


class BedInline(admin.TabularInline):
    model = Bed
    extra = 0
    readonly_fields = ('is_taken',)


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'department', 'bed_count', 'occupied_beds')
    list_filter = ('department',)
    search_fields = ('name',)
    readonly_fields = ('bed_count', 'occupied_beds')
    inlines = [BedInline]


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ('id', 'bed_no', 'ward', 'is_taken')
    list_filter = ('is_taken', 'ward')
    search_fields = ('bed_no', 'ward__name')
    readonly_fields = ('is_taken',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'nic', 'gender', 'dob', 'is_active')
    list_filter = ('is_active', 'gender')
    search_fields = ('full_name', 'nic', 'phone')


@admin.register(TriageRecord)
class TriageRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'name', 'triage_level', 'severity', 'created_at')
    list_filter = ('triage_level',)
    search_fields = ('name', 'patient__full_name', 'severity')


class QueueTransitionInline(admin.TabularInline):
    model = QueueTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp', 'reason')


@admin.register(PatientQueue)
class PatientQueueAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'priority', 'status', 'admitted', 'created_at')
    list_filter = ('status', 'priority', 'admitted')
    search_fields = ('patient__full_name', 'patient__nic')
    inlines = [QueueTransitionInline]


@admin.register(PatientAdmission)
class PatientAdmissionAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'bed', 'status', 'admitted_at', 'discharged_at')
    list_filter = ('status',)
    search_fields = ('patient__full_name', 'patient__nic', 'bed__bed_no')
    # Status and bed move only through the workflow endpoints.
    readonly_fields = ('status', 'bed', 'patient', 'discharged_at', 'confirmed_by')


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'type', 'status', 'admission', 'queue', 'doctor', 'created_at')
    list_filter = ('type', 'status')
    inlines = [PrescriptionItemInline]


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')
    readonly_fields = ('user', 'action', 'object_type', 'object_id', 'detail', 'created_at')


@admin.register(Specialization)
class SpecializationAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)
