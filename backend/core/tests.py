"""
Test suite for authentication, roles and the audit trail
"""
from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import TestCase
from io import StringIO
from rest_framework import status
from rest_framework.test import APIRequestFactory
from backend.core.cache_utils import get_cached_parts_issue_list, invalidate_parts_issue_cache, make_cache_key
from backend.core.models import AuditLog
from backend.core.roles import ALL_ROLES, CENTRAL_ADMIN, INVENTORY_MANAGER, SC_MANAGER, TECHNICIAN, user_has_role
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log


class AuthenticationTests(TestCase):
    """Test JWT login, refresh and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.service_center = TestDataFactory.create_service_center(code='SC001')
        self.user = TestDataFactory.create_user(
            username='manager1', password='testpass123', roles=[SC_MANAGER], service_center=self.service_center
        )

    def test_login_returns_tokens(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'manager1', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_login_with_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'manager1', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {'username': 'manager1', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_reports_roles_and_capabilities(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['roles'], [SC_MANAGER])
        self.assertEqual(response.data['service_center_code'], 'SC001')
        self.assertFalse(response.data['is_central'])
        self.assertFalse(response.data['can_dispatch'])

    def test_endpoints_require_authentication(self):
        response = self.client.get('/api/v1/parts-issues/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_list_requires_staff(self):
        self.client.authenticate_user(self.user)
        self.assertEqual(self.client.get('/api/v1/users/').status_code, status.HTTP_403_FORBIDDEN)

        staff = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(staff)
        response = self.client.post('/api/v1/users/', {
            'username': 'tech2', 'password': 'Str0ng-pass-123', 'password_confirm': 'Str0ng-pass-123',
            'service_center': self.service_center.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['service_center_code'], 'SC001')


class RoleTests(TestCase):
    """Test role helpers and the group setup command"""

    def test_user_has_role(self):
        technician = TestDataFactory.create_user(roles=[TECHNICIAN])
        self.assertTrue(user_has_role(technician, TECHNICIAN, SC_MANAGER))
        self.assertFalse(user_has_role(technician, CENTRAL_ADMIN))

    def test_superuser_has_every_role(self):
        superuser = TestDataFactory.create_user(is_superuser=True)
        self.assertTrue(user_has_role(superuser, INVENTORY_MANAGER))

    def test_create_user_groups(self):
        out = StringIO()
        call_command('create_user_groups', stdout=out)
        self.assertEqual(set(Group.objects.values_list('name', flat=True)), set(ALL_ROLES))
        self.assertTrue(Group.objects.get(name=TECHNICIAN).permissions.filter(codename='add_partsissuerequest').exists())

        # Running twice is harmless
        call_command('create_user_groups', stdout=out)
        self.assertEqual(Group.objects.count(), len(ALL_ROLES))


class AuditLogTests(TestCase):
    """Test audit log helpers and endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.staff = TestDataFactory.create_user(is_staff=True)
        self.client = AuthenticatedAPIClient()

    def test_create_audit_log_captures_ip(self):
        request = APIRequestFactory().post('/', HTTP_X_FORWARDED_FOR='10.0.0.5, 10.0.0.1')
        request.user = self.user
        log = create_audit_log(
            request=request, action='parts_issue_create', model_name='PartsIssueRequest',
            object_id=1, object_reference='PI-SC001-2025-03-0001', changes={'items': 1},
        )
        self.assertEqual(log.ip_address, '10.0.0.5')
        self.assertEqual(log.user, self.user)

    def test_missing_fields_are_skipped(self):
        self.assertIsNone(create_audit_log(user=self.user, action='create'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_users_only_see_their_own_entries(self):
        create_audit_log(user=self.user, action='create', model_name='Part', object_id=1)
        create_audit_log(user=self.staff, action='create', model_name='Part', object_id=2)

        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(self.staff)
        response = self.client.get('/api/v1/audit-logs/', {'model': 'Part'})
        self.assertEqual(response.data['count'], 2)

    def test_detail_permission(self):
        log = create_audit_log(user=self.staff, action='create', model_name='Part', object_id=1)
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CacheUtilsTests(TestCase):
    """Test cache key generation"""

    def test_cache_key_is_stable(self):
        self.assertEqual(make_cache_key('p', 1, a='x'), make_cache_key('p', 1, a='x'))
        self.assertNotEqual(make_cache_key('p', 1, a='x'), make_cache_key('p', 2, a='x'))

    def test_list_key_per_user_and_filters(self):
        _, first = get_cached_parts_issue_list(1, {'status': 'ADMIN_APPROVED'})
        _, second = get_cached_parts_issue_list(2, {'status': 'ADMIN_APPROVED'})
        self.assertNotEqual(first, second)
        self.assertTrue(first.startswith('parts_issue_list:'))
        invalidate_parts_issue_cache()
