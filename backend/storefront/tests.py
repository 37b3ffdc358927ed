"""
Test suite for the Storefront module
Tests: hero slide and homepage section admin CRUD, reorder, config validation, public reads
"""
import uuid

from django.test import TestCase
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.storefront.models import HeroSlide, HomepageSection
from backend.storefront.serializers import SectionConfigSerializer


class HeroSlideAPITests(TestCase):
    """Test hero slide admin endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_create_slide(self):
        data = {
            'title': 'Summer sale',
            'subtitle': 'Up to 50% off',
            'image_url': 'https://cdn.test/summer.jpg',
            'link': '/sale',
        }
        response = self.client.post('/api/v1/admin/hero-slides/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['display_order'], 0)
        self.assertTrue(response.data['is_active'])

    def test_create_requires_title_and_link(self):
        response = self.client.post('/api/v1/admin/hero-slides/', {'subtitle': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('title', response.data)
        self.assertIn('link', response.data)

    def test_negative_display_order_rejected(self):
        data = {'title': 'T', 'link': '/', 'display_order': -1}
        response = self.client.post('/api/v1/admin/hero-slides/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_and_delete(self):
        slide = TestDataFactory.create_hero_slide()
        response = self.client.patch(f'/api/v1/admin/hero-slides/{slide.id}/',
                                     {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

        response = self.client.delete(f'/api/v1/admin/hero-slides/{slide.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(HeroSlide.objects.exists())

    def test_list_search_and_sort(self):
        TestDataFactory.create_hero_slide(title='Winter deals', display_order=1)
        TestDataFactory.create_hero_slide(title='Spring deals', display_order=0)
        TestDataFactory.create_hero_slide(title='New arrivals', display_order=2)

        response = self.client.get('/api/v1/admin/hero-slides/', {'search': 'deals'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['title'] for s in response.data['results']], ['Spring deals', 'Winter deals'])

        response = self.client.get('/api/v1/admin/hero-slides/', {'sortOrder': 'desc'})
        self.assertEqual(response.data['results'][0]['title'], 'New arrivals')

    def test_invalid_sort_by_rejected(self):
        response = self.client.get('/api/v1/admin/hero-slides/', {'sortBy': 'title'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reorder(self):
        a = TestDataFactory.create_hero_slide(display_order=0)
        b = TestDataFactory.create_hero_slide(display_order=1)
        c = TestDataFactory.create_hero_slide(display_order=2)
        response = self.client.post('/api/v1/admin/hero-slides/reorder/',
                                    {'ids': [str(c.id), str(a.id), str(b.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(
            list(HeroSlide.objects.order_by('display_order').values_list('id', flat=True)),
            [c.id, a.id, b.id],
        )

    def test_reorder_unknown_id_leaves_order(self):
        a = TestDataFactory.create_hero_slide(display_order=0)
        b = TestDataFactory.create_hero_slide(display_order=1)
        response = self.client.post('/api/v1/admin/hero-slides/reorder/',
                                    {'ids': [str(b.id), str(uuid.uuid4()), str(a.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        a.refresh_from_db()
        b.refresh_from_db()
        self.assertEqual((a.display_order, b.display_order), (0, 1))

    def test_reorder_requires_staff(self):
        slide = TestDataFactory.create_hero_slide()
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/admin/hero-slides/reorder/',
                                    {'ids': [str(slide.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SectionConfigTests(TestCase):
    """Test nested homepage section config validation"""

    def validate(self, config):
        serializer = SectionConfigSerializer(data=config)
        return serializer.is_valid(), serializer.errors

    def test_default_config_valid(self):
        valid, errors = self.validate(TestDataFactory.section_config())
        self.assertTrue(valid, errors)

    def test_product_limit_bounds(self):
        config = TestDataFactory.section_config(
            layout={'row_count': 1, 'display_style': 'grid', 'product_limit': 30})
        valid, errors = self.validate(config)
        self.assertFalse(valid)
        self.assertIn('product_limit', errors['layout'])

    def test_row_count_choices(self):
        config = TestDataFactory.section_config(
            layout={'row_count': 3, 'display_style': 'grid', 'product_limit': 8})
        self.assertFalse(self.validate(config)[0])

    def test_unknown_auto_fill_criteria(self):
        config = TestDataFactory.section_config(
            products={'selected_product_ids': [], 'auto_fill': {'enabled': True, 'criteria': 'cheapest'}})
        self.assertFalse(self.validate(config)[0])

    def test_selected_products_must_be_uuid_v4(self):
        config = TestDataFactory.section_config(
            products={'selected_product_ids': [str(uuid.uuid1())],
                      'auto_fill': {'enabled': False, 'criteria': 'newest'}})
        self.assertFalse(self.validate(config)[0])

    def test_banner_width_ratio(self):
        config = TestDataFactory.section_config(
            banner={'enabled': True, 'image_url': 'https://cdn.test/b.jpg', 'position': 'left', 'width_ratio': 60})
        valid, errors = self.validate(config)
        self.assertFalse(valid)
        self.assertIn('width_ratio', errors['banner'])

    def test_display_required(self):
        config = TestDataFactory.section_config()
        del config['display']
        valid, errors = self.validate(config)
        self.assertFalse(valid)
        self.assertIn('display', errors)


class HomepageSectionAPITests(TestCase):
    """Test homepage section admin endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.category = TestDataFactory.create_category(name='Beverages')

    def test_create_section(self):
        product_id = str(uuid.uuid4())
        config = TestDataFactory.section_config(
            products={'selected_product_ids': [product_id],
                      'auto_fill': {'enabled': False, 'criteria': 'featured', 'min_stock': 1}})
        response = self.client.post('/api/v1/admin/homepage-sections/',
                                    {'category': str(self.category.id), 'config': config}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category_detail']['name'], 'Beverages')

        section = HomepageSection.objects.get(pk=response.data['id'])
        self.assertEqual(section.config['products']['selected_product_ids'], [product_id])

    def test_create_with_invalid_config(self):
        config = TestDataFactory.section_config(
            display={'show_category_header': True, 'show_view_all_link': True, 'animation': 'spin'})
        response = self.client.post('/api/v1/admin/homepage-sections/',
                                    {'category': str(self.category.id), 'config': config}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('config', response.data)

    def test_create_with_unknown_category(self):
        response = self.client.post('/api/v1/admin/homepage-sections/',
                                    {'category': str(uuid.uuid4()), 'config': TestDataFactory.section_config()},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('category', response.data)

    def test_list_is_active_filter(self):
        TestDataFactory.create_homepage_section(category=self.category)
        TestDataFactory.create_homepage_section(is_active=False)
        response = self.client.get('/api/v1/admin/homepage-sections/', {'isActive': 'true'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_reorder(self):
        first = TestDataFactory.create_homepage_section(display_order=0)
        second = TestDataFactory.create_homepage_section(display_order=1)
        response = self.client.post('/api/v1/admin/homepage-sections/reorder/',
                                    {'ids': [str(second.id), str(first.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual((second.display_order, first.display_order), (0, 1))

    def test_reorder_duplicate_ids(self):
        first = TestDataFactory.create_homepage_section(display_order=0)
        second = TestDataFactory.create_homepage_section(display_order=1)
        third = TestDataFactory.create_homepage_section(display_order=2)
        response = self.client.post('/api/v1/admin/homepage-sections/reorder/',
                                    {'ids': [str(third.id), str(second.id), str(third.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        for section, expected in ((first, 0), (second, 1), (third, 2)):
            section.refresh_from_db()
            self.assertEqual(section.display_order, expected)


class PublicStorefrontTests(TestCase):
    """Test the unauthenticated storefront reads"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_public_hero_slides_only_active_in_order(self):
        TestDataFactory.create_hero_slide(title='Second', display_order=1)
        TestDataFactory.create_hero_slide(title='First', display_order=0)
        TestDataFactory.create_hero_slide(title='Hidden', display_order=0, is_active=False)

        response = self.client.get('/api/v1/hero-slides/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['title'] for s in response.data], ['First', 'Second'])

    def test_public_homepage_sections(self):
        category = TestDataFactory.create_category(name='Snacks')
        TestDataFactory.create_homepage_section(category=category, display_order=1)
        TestDataFactory.create_homepage_section(display_order=0, is_active=False)

        response = self.client.get('/api/v1/homepage-sections/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['category']['name'], 'Snacks')
        self.assertIn('layout', response.data[0]['config'])
