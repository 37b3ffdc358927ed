from django.urls import path
from . import views

urlpatterns = [
    # Admin: hero slides
    path('admin/hero-slides/', views.hero_slide_list_create, name='hero-slide-list-create'),
    path('admin/hero-slides/reorder/', views.hero_slide_reorder, name='hero-slide-reorder'),
    path('admin/hero-slides/<uuid:pk>/', views.hero_slide_detail, name='hero-slide-detail'),

    # Admin: homepage sections
    path('admin/homepage-sections/', views.homepage_section_list_create, name='homepage-section-list-create'),
    path('admin/homepage-sections/reorder/', views.homepage_section_reorder, name='homepage-section-reorder'),
    path('admin/homepage-sections/<uuid:pk>/', views.homepage_section_detail, name='homepage-section-detail'),

    # Public storefront
    path('hero-slides/', views.public_hero_slides, name='public-hero-slides'),
    path('homepage-sections/', views.public_homepage_sections, name='public-homepage-sections'),
]
