"""
Test suite for service centers
"""
from django.test import TestCase
from rest_framework import status
from backend.core.roles import CENTRAL_ADMIN, SC_MANAGER
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.locations.models import ServiceCenter


class ServiceCenterAPITests(TestCase):
    """Test service center listing, creation and visibility"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.main = TestDataFactory.create_service_center(name='Main Workshop', code='SC001')
        self.branch = TestDataFactory.create_service_center(name='Branch Workshop', code='SC002')
        self.admin = TestDataFactory.create_user(roles=[CENTRAL_ADMIN])
        self.manager = TestDataFactory.create_user(roles=[SC_MANAGER], service_center=self.main)

    def test_central_staff_see_all_service_centers(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/service-centers/')
        self.assertEqual({row['code'] for row in response.data}, {'SC001', 'SC002'})

    def test_workshop_staff_see_their_own(self):
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/service-centers/')
        self.assertEqual([row['code'] for row in response.data], ['SC001'])
        response = self.client.get(f'/api/v1/service-centers/{self.branch.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_inactive_hidden_unless_requested(self):
        self.branch.is_active = False
        self.branch.save()
        self.client.authenticate_user(self.admin)
        self.assertEqual(len(self.client.get('/api/v1/service-centers/').data), 1)
        self.assertEqual(len(self.client.get('/api/v1/service-centers/', {'include_inactive': 'true'}).data), 2)

    def test_admin_creates_service_center_with_normalised_code(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/service-centers/', {'name': 'North', 'code': ' sc003 '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'SC003')

    def test_code_must_be_alphanumeric(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/service-centers/', {'name': 'Bad', 'code': 'SC-9'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', response.data)

    def test_manager_cannot_create(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/service-centers/', {'name': 'North', 'code': 'SC003'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(ServiceCenter.objects.filter(code='SC003').exists())

    def test_code_cannot_change(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/service-centers/{self.main.id}/', {'code': 'SC009'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/v1/service-centers/{self.main.id}/', {'city': 'Pune'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['city'], 'Pune')
