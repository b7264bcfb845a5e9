import pytest
from django.core.management import call_command
from django.urls import reverse
from rest_framework.test import APIClient

from visits.models import User

pytestmark = pytest.mark.django_db


def login(client, username, password, **extra):
    return client.post(reverse('login_view'), {'username': username, 'password': password, **extra}, format='json')


def test_login_returns_jwt_pair_and_stored_role():
    client = APIClient()
    u = User.objects.create_user(username='nurse_jwt', password='P@ssw0rd1', role='nurse')
    r = login(client, 'nurse_jwt', 'P@ssw0rd1')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['access'] and r.data['refresh']
    assert r.data['user'] == {'id': u.id, 'username': 'nurse_jwt', 'role': 'nurse'}


def test_no_role_bypass_in_login():
    client = APIClient()
    u = User.objects.create_user(username='u1', password='P@ssw0rd1', role='nurse')
    r = login(client, 'u1', 'P@ssw0rd1', role='admin')
    assert r.status_code == 200
    assert r.data['user']['role'] == 'nurse'
    u.refresh_from_db()
    assert u.role == 'nurse'

    # The token still only grants nurse access
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['access']}")
    resp = client.post(reverse('patient_register'), {}, format='json')
    assert resp.status_code == 403


def test_invalid_credentials_are_rejected():
    client = APIClient()
    User.objects.create_user(username='u2', password='P@ssw0rd1', role='doctor')
    r = login(client, 'u2', 'wrong')
    assert r.status_code == 401
    assert r.data['error']['code'] == 'invalid_credentials'
    r = login(client, 'nobody', 'P@ssw0rd1')
    assert r.status_code == 401


def test_login_requires_both_fields():
    r = APIClient().post(reverse('login_view'), {'username': 'u3'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid'
    assert 'password' in r.data['error']['fields']


def test_requests_without_token_are_unauthorized():
    client = APIClient()
    r = client.get(reverse('patient_list'))
    assert r.status_code == 401
    assert r.data['ok'] is False

    client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')
    r = client.get(reverse('patient_list'))
    assert r.status_code == 401


def test_bearer_token_grants_role_access():
    client = APIClient()
    User.objects.create_user(username='reg', password='P@ssw0rd1', role='registrar')
    token = login(client, 'reg', 'P@ssw0rd1').data['access']
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    r = client.get(reverse('patient_list'))
    assert r.status_code == 200
    assert r.data == []


def test_refresh_issues_new_access_token():
    client = APIClient()
    User.objects.create_user(username='ph', password='P@ssw0rd1', role='pharmacist')
    refresh = login(client, 'ph', 'P@ssw0rd1').data['refresh']
    r = client.post(reverse('token_refresh'), {'refresh': refresh}, format='json')
    assert r.status_code == 200
    assert r.data['access']


def test_role_change_applies_to_existing_token():
    client = APIClient()
    u = User.objects.create_user(username='doc', password='P@ssw0rd1', role='doctor')
    token = login(client, 'doc', 'P@ssw0rd1').data['access']
    u.role = ''
    u.save(update_fields=['role'])
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    assert client.get(reverse('patient_list')).status_code == 403


def test_ensure_workflow_users_is_idempotent():
    call_command('ensure_workflow_users', password='S3cret!pw')
    User.objects.filter(username='nurse1').update(role='doctor', is_active=False)
    call_command('ensure_workflow_users', password='S3cret!pw')

    roles = dict(User.objects.values_list('username', 'role'))
    assert roles == {
        'registrar1': 'registrar',
        'nurse1': 'nurse',
        'doctor1': 'doctor',
        'pharmacist1': 'pharmacist',
        'admin1': 'admin',
    }
    nurse = User.objects.get(username='nurse1')
    assert nurse.is_active and nurse.check_password('S3cret!pw')
