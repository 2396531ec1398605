import re

import bleach
from django.utils import timezone
from rest_framework import serializers

NIC_RE = re.compile(r'^(\d{12}|\d{9}[VvXx])$')
GENDERS = ['MALE', 'FEMALE', 'OTHER']
BLOOD_GROUPS = ['A+', 'A-', 'B+', 'B-', 'O+', 'O-', 'AB+', 'AB-']


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class PatientWriteSerializer(serializers.Serializer):
    fullName = serializers.CharField(max_length=255)
    dob = serializers.DateField()
    gender = serializers.ChoiceField(choices=GENDERS)
    nic = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=12)
    bloodGroup = serializers.ChoiceField(choices=BLOOD_GROUPS, required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)

    def validate_fullName(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Full name is required.')
        return v

    def validate_dob(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('Date of birth cannot be in the future.')
        return v

    def validate_nic(self, v):
        v = _clean(v)
        if not v:
            return None
        if not NIC_RE.match(v):
            raise serializers.ValidationError('NIC must be 12 digits, or 9 digits followed by V or X.')
        return v.upper()

    def validate_phone(self, v):
        v = _clean(v)
        if not v:
            return ''
        digits = re.sub(r'\D', '', v)
        if not 9 <= len(digits) <= 12:
            raise serializers.ValidationError('Phone number must have 9 to 12 digits.')
        return digits


class PatientListQuerySerializer(serializers.Serializer):
    nic = serializers.CharField(required=False)
    active = serializers.BooleanField(required=False, allow_null=True, default=None)
    q = serializers.CharField(required=False, allow_blank=True)
