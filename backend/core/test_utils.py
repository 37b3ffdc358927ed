"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from django.utils.text import slugify
from backend.catalog.models import Category
from backend.storefront.models import HeroSlide, HomepageSection
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
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(**kwargs):
        """Create a staff user allowed on the admin endpoints"""
        kwargs.setdefault('is_staff', True)
        return TestDataFactory.create_user(**kwargs)

    @staticmethod
    def create_category(name=None, parent=None, display_order=0, is_active=True, image_url=''):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            slug=f'{slugify(name)}-{TestDataFactory.random_string(4).lower()}',
            parent=parent,
            display_order=display_order,
            is_active=is_active,
            image_url=image_url,
        )

    @staticmethod
    def create_hero_slide(title=None, display_order=0, is_active=True, image_url='https://cdn.test/slide.jpg'):
        """Create a test hero slide"""
        if not title:
            title = f'Slide_{TestDataFactory.random_string(6)}'
        return HeroSlide.objects.create(
            title=title,
            subtitle='Test subtitle',
            image_url=image_url,
            link='/products',
            display_order=display_order,
            is_active=is_active,
        )

    @staticmethod
    def section_config(**overrides):
        """A homepage section config that passes validation"""
        config = {
            'layout': {'row_count': 1, 'display_style': 'grid', 'product_limit': 8, 'columns': 4},
            'products': {
                'selected_product_ids': [],
                'auto_fill': {'enabled': True, 'criteria': 'newest'},
            },
            'display': {'show_category_header': True, 'show_view_all_link': True},
        }
        config.update(overrides)
        return config

    @staticmethod
    def create_homepage_section(category=None, config=None, display_order=0, is_active=True):
        """Create a test homepage section"""
        return HomepageSection.objects.create(
            category=category or TestDataFactory.create_category(),
            config=config if config is not None else TestDataFactory.section_config(),
            display_order=display_order,
            is_active=is_active,
        )


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
