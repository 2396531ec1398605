"""
Staff accounts and doctor profiles.

Only administrators manage accounts.  Accounts are never deleted: a
deactivated user keeps the audit trail, queue transitions and
prescriptions that point at them, and loses every token it holds.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import ValidationError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from inpatient.exceptions import ConflictError
from inpatient.models import Department, Specialization, User
from inpatient.services.admissions import require_role
from inpatient.services.audit import log_action

logger = logging.getLogger(__name__)

USER_FIELDS = {
    'username': 'username',
    'role': 'role',
    'firstName': 'first_name',
    'lastName': 'last_name',
    'email': 'email',
    'mobileNumber': 'mobile_number',
    'isActive': 'is_active',
}


def username_taken(username: str, *, exclude_id: Optional[int] = None) -> bool:
    qs = User.objects.filter(username__iexact=(username or '').strip())
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def _department(department_id: Optional[int]) -> Optional[Department]:
    if department_id is None:
        return None
    department = Department.objects.filter(id=department_id).first()
    if department is None:
        raise ValidationError({'departmentId': ['Department does not exist.']})
    return department


def _revoke_tokens(user: User) -> int:
    Token.objects.filter(user=user).delete()
    count = 0
    for token in OutstandingToken.objects.filter(user=user):
        _, created = BlacklistedToken.objects.get_or_create(token=token)
        count += int(created)
    return count


def _save(user: User) -> None:
    try:
        with transaction.atomic():
            user.save()
    except IntegrityError:
        raise ConflictError(f'Username {user.username} is already taken.', code='username_taken')


def create_user(actor, data: dict) -> User:
    require_role(actor, User.ROLE_ADMIN)
    if username_taken(data['username']):
        raise ConflictError(f"Username {data['username']} is already taken.", code='username_taken')
    user = User(**{USER_FIELDS[k]: v for k, v in data.items() if k in USER_FIELDS})
    user.department = _department(data.get('departmentId'))
    user.is_staff = user.role == User.ROLE_ADMIN
    user.set_password(data['password'])
    with transaction.atomic():
        _save(user)
        log_action(user=actor, action='user_create', object_type='user', object_id=user.id,
                   detail={'username': user.username, 'role': user.role})
    logger.info('User %s created with role %s', user.username, user.role)
    return user


def update_user(actor, user: User, data: dict) -> User:
    """Partial update.  A role change away from doctor clears the doctor profile."""
    require_role(actor, User.ROLE_ADMIN)
    if user.id == actor.id and (data.get('role', user.role) != user.role or data.get('isActive') is False):
        raise ConflictError('Administrators cannot demote or deactivate their own account.', code='own_account')
    if 'username' in data and username_taken(data['username'], exclude_id=user.id):
        raise ConflictError(f"Username {data['username']} is already taken.", code='username_taken')
    was_active = user.is_active
    with transaction.atomic():
        for key, value in data.items():
            if key in USER_FIELDS:
                setattr(user, USER_FIELDS[key], value)
        if 'departmentId' in data:
            user.department = _department(data['departmentId'])
        if data.get('password'):
            user.set_password(data['password'])
        user.is_staff = user.role == User.ROLE_ADMIN
        if user.role != User.ROLE_DOCTOR:
            user.license_no = ''
        _save(user)
        if user.role != User.ROLE_DOCTOR:
            user.specializations.clear()
        if was_active and not user.is_active:
            _revoke_tokens(user)
        log_action(user=actor, action='user_update', object_type='user', object_id=user.id,
                   detail={'fields': sorted(k for k in data if k != 'password')})
    return user


def deactivate_user(actor, user: User) -> User:
    require_role(actor, User.ROLE_ADMIN)
    if user.id == actor.id:
        raise ConflictError('Administrators cannot deactivate their own account.', code='own_account')
    with transaction.atomic():
        locked = User.objects.select_for_update().get(id=user.id)
        if not locked.is_active:
            raise ConflictError('User is already inactive.', code='user_inactive')
        locked.is_active = False
        locked.save(update_fields=['is_active'])
        revoked = _revoke_tokens(locked)
        log_action(user=actor, action='user_deactivate', object_type='user', object_id=locked.id,
                   detail={'blacklisted': revoked})
    logger.info('User %s deactivated by %s', locked.username, actor.username)
    return locked


def set_doctor_detail(actor, user: User, *, license_no: Optional[str] = None,
                      specialization_ids: Optional[Iterable[int]] = None) -> User:
    require_role(actor, User.ROLE_ADMIN)
    if user.role != User.ROLE_DOCTOR:
        raise ConflictError('Doctor details can only be set on doctor accounts.', code='not_a_doctor')
    with transaction.atomic():
        if license_no is not None:
            user.license_no = license_no
            user.save(update_fields=['license_no'])
        if specialization_ids is not None:
            ids = set(specialization_ids)
            found = list(Specialization.objects.filter(id__in=ids))
            missing = sorted(ids - {s.id for s in found})
            if missing:
                raise ValidationError({'specializationIds': [f'Unknown specializations: {missing}.']})
            user.specializations.set(found)
        log_action(user=actor, action='doctor_detail_update', object_type='user', object_id=user.id)
    return user


def create_specialization(name: str) -> Specialization:
    try:
        with transaction.atomic():
            return Specialization.objects.create(name=name)
    except IntegrityError:
        raise ConflictError(f'Specialization {name} already exists.', code='specialization_exists')


def rename_specialization(specialization: Specialization, name: str) -> Specialization:
    specialization.name = name
    try:
        with transaction.atomic():
            specialization.save()
    except IntegrityError:
        raise ConflictError(f'Specialization {name} already exists.', code='specialization_exists')
    return specialization


def delete_specialization(specialization: Specialization) -> None:
    if specialization.doctors.exists():
        raise ConflictError('Specialization is assigned to doctors.', code='specialization_in_use')
    specialization.delete()


def format_specialization(specialization: Specialization) -> dict:
    return {
        'id': specialization.id,
        'name': specialization.name,
        'createdAt': specialization.created_at.isoformat(),
        'updatedAt': specialization.updated_at.isoformat(),
    }


def format_user(user: User) -> dict:
    data = {
        'id': user.id,
        'username': user.username,
        'firstName': user.first_name,
        'lastName': user.last_name,
        'name': user.get_full_name() or user.username,
        'email': user.email,
        'mobileNumber': user.mobile_number,
        'role': user.role,
        'departmentId': user.department_id,
        'isActive': user.is_active,
        'createdAt': user.date_joined.isoformat(),
        'lastLoginAt': user.last_login.isoformat() if user.last_login else None,
    }
    if user.role == User.ROLE_DOCTOR:
        data['doctorDetail'] = {
            'licenseNo': user.license_no,
            'specializations': [format_specialization(s) for s in user.specializations.order_by('name')],
        }
    return data
