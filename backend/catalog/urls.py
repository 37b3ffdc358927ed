from django.urls import path
from .views import category_list_create, category_detail, category_reorder

urlpatterns = [
    # Category endpoints
    path('admin/categories/', category_list_create, name='category-list-create'),
    path('admin/categories/reorder/', category_reorder, name='category-reorder'),
    path('admin/categories/<uuid:pk>/', category_detail, name='category-detail'),
]
