import uuid

import django_filters

from backend.core.filters import DisplayOrderFilter


class CategoryFilter(DisplayOrderFilter):
    """Filter for the admin category list"""
    parentId = django_filters.CharFilter(method='filter_parent', label='Parent ID')

    search_field = 'name'

    def filter_parent(self, queryset, name, value):
        # "null" selects top-level categories
        if value.lower() in ('null', 'none', 'root'):
            return queryset.filter(parent__isnull=True)
        try:
            parent_id = uuid.UUID(value)
        except ValueError:
            return queryset.none()
        return queryset.filter(parent_id=parent_id)
