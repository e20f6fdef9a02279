"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.locations.models import ServiceCenter
from backend.catalog.models import Part
from backend.inventory.models import CentralStock
from backend.jobcards.services import create_job_card
from backend.purchasing.services import create_purchase_order
from backend.parts_issues.intake import create_request
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', roles=(), service_center=None,
                    is_staff=False, is_superuser=False):
        """Create a test user, optionally in role groups and attached to a service center"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            service_center=service_center,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        for role in roles:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    @staticmethod
    def create_service_center(name=None, code=None):
        """Create a test service center"""
        if not code:
            code = f'SC{TestDataFactory.random_string(4).upper()}'
        if not name:
            name = f'Service Center {code}'
        return ServiceCenter.objects.create(
            name=name,
            code=code,
            address=f'Test Address {name}',
            phone='1234567890'
        )

    @staticmethod
    def create_part(part_number=None, name=None, unit_price=None, stock=None, is_active=True):
        """Create a test part; ``stock`` also creates its central stock row"""
        if not part_number:
            part_number = f'P{TestDataFactory.random_string(8).upper()}'
        if not name:
            name = f'Part {part_number}'
        if unit_price is None:
            unit_price = Decimal('100.00')
        part = Part.objects.create(
            part_number=part_number,
            name=name,
            hsn_code='8708',
            unit_price=unit_price,
            is_active=is_active
        )
        if stock is not None:
            CentralStock.objects.create(part=part, quantity=stock)
        return part

    @staticmethod
    def create_job_card(service_center=None, user=None, **fields):
        """Create a test job card with an allocated number"""
        if not service_center:
            service_center = TestDataFactory.create_service_center()
        fields.setdefault('customer_name', f'Customer {TestDataFactory.random_string(4)}')
        fields.setdefault('vehicle_number', f'KA01{random.randint(1000, 9999)}')
        return create_job_card(service_center, created_by=user, **fields)

    @staticmethod
    def create_parts_issue(user, job_card=None, parts=None, quantities=None, purchase_order=None):
        """Create a parts-issue request; one item per part, quantity 5 unless given"""
        if not job_card:
            job_card = TestDataFactory.create_job_card(user=user)
        if parts is None:
            parts = [TestDataFactory.create_part()]
        quantities = quantities or [5] * len(parts)
        items = [{'part': part, 'quantity': quantity} for part, quantity in zip(parts, quantities)]
        return create_request(job_card, items, user, purchase_order=purchase_order)

    @staticmethod
    def create_purchase_order(service_center, user=None, parts=None, quantities=None, job_card=None):
        """Create a pending purchase order; one line per part, quantity 10 unless given"""
        if parts is None:
            parts = [TestDataFactory.create_part()]
        quantities = quantities or [10] * len(parts)
        items = [{'part': part, 'quantity': quantity} for part, quantity in zip(parts, quantities)]
        return create_purchase_order(service_center, items, created_by=user, job_card=job_card)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
