import re

import bleach
from django.contrib.auth.validators import UnicodeUsernameValidator
from rest_framework import serializers

from inpatient.models import User

ROLES = [r for r, _ in User.ROLE_CHOICES]


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class UserWriteSerializer(serializers.Serializer):
    """Staff account fields; ``username``, ``password`` and ``role`` are required on create."""
    username = serializers.CharField(max_length=150, validators=[UnicodeUsernameValidator()])
    password = serializers.CharField(min_length=8, max_length=128, write_only=True)
    role = serializers.ChoiceField(choices=ROLES)
    firstName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    lastName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    email = serializers.EmailField(required=False, allow_blank=True)
    mobileNumber = serializers.CharField(required=False, allow_blank=True, max_length=32)
    departmentId = serializers.IntegerField(required=False, allow_null=True)
    isActive = serializers.BooleanField(required=False)

    def validate_username(self, v):
        return v.strip()

    def validate_firstName(self, v):
        return _clean(v)

    def validate_lastName(self, v):
        return _clean(v)

    def validate_mobileNumber(self, v):
        v = _clean(v)
        if not v:
            return ''
        digits = re.sub(r'\D', '', v)
        if not 9 <= len(digits) <= 12:
            raise serializers.ValidationError('Mobile number must have 9 to 12 digits.')
        return digits


class DoctorDetailSerializer(serializers.Serializer):
    licenseNo = serializers.CharField(required=False, allow_blank=True, max_length=64)
    specializationIds = serializers.ListField(child=serializers.IntegerField(), required=False)

    def validate_licenseNo(self, v):
        return _clean(v)


class SpecializationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)

    def validate_name(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Name is required.')
        return v


class UserListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ROLES, required=False)
    active = serializers.BooleanField(required=False, allow_null=True, default=None)
    q = serializers.CharField(required=False, allow_blank=True)
