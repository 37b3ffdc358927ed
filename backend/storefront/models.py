import uuid

from django.db import models

class HeroSlide(models.Model):
    """Slides of the storefront hero carousel"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200)
    subtitle = models.CharField(max_length=300, blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    gradient = models.CharField(max_length=200, blank=True)  # CSS gradient shown when no image
    link = models.CharField(max_length=500)
    display_order = models.IntegerField(default=0, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'hero_slides'
        ordering = ['display_order', 'created_at']

class HomepageSection(models.Model):
    """Category section on the storefront homepage (layout, product selection, banner)"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.ForeignKey('catalog.Category', on_delete=models.CASCADE, related_name='homepage_sections')
    config = models.JSONField(default=dict)
    display_order = models.IntegerField(default=0, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Section: {self.category.name if self.category_id else 'N/A'}"

    class Meta:
        db_table = 'homepage_sections'
        ordering = ['display_order', 'created_at']
