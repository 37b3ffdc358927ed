from django.contrib import admin
from .models import HeroSlide, HomepageSection


@admin.register(HeroSlide)
class HeroSlideAdmin(admin.ModelAdmin):
    list_display = ['title', 'link', 'display_order', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['title', 'subtitle']
    ordering = ['display_order', 'created_at']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(HomepageSection)
class HomepageSectionAdmin(admin.ModelAdmin):
    list_display = ['category', 'display_order', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['category__name']
    ordering = ['display_order', 'created_at']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['category']
