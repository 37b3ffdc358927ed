import django_filters


class ActiveStatusFilter(django_filters.FilterSet):
    """
    Base filter for admin lists with an is_active flag.

    The admin UI sends isActive as the strings "true"/"false"; anything else
    is rejected rather than silently read as false.
    """
    isActive = django_filters.ChoiceFilter(
        method='filter_is_active',
        choices=[('true', 'true'), ('false', 'false')],
        label='Active',
    )

    def filter_is_active(self, queryset, name, value):
        return queryset.filter(is_active=(value == 'true'))


class DisplayOrderFilter(ActiveStatusFilter):
    """Active filter plus title search and sortBy/sortOrder for display-ordered lists"""
    SORT_COLUMNS = ['display_order', 'created_at']

    search = django_filters.CharFilter(method='filter_search', label='Search')
    sortBy = django_filters.ChoiceFilter(
        method='filter_noop',
        choices=[(c, c) for c in SORT_COLUMNS],
        label='Sort by',
    )
    sortOrder = django_filters.ChoiceFilter(
        method='filter_noop',
        choices=[('asc', 'asc'), ('desc', 'desc')],
        label='Sort order',
    )

    search_field = 'title'

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(**{f'{self.search_field}__icontains': value})

    def filter_noop(self, queryset, name, value):
        # Ordering is applied once all filters ran, see filter_queryset
        return queryset

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        sort_by = self.form.cleaned_data.get('sortBy') or 'display_order'
        sort_order = self.form.cleaned_data.get('sortOrder') or 'asc'
        prefix = '-' if sort_order == 'desc' else ''
        ordering = [f'{prefix}{sort_by}']
        if sort_by != 'created_at':
            ordering.append('created_at')
        return queryset.order_by(*ordering)
