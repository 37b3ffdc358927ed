from backend.core.filters import ActiveStatusFilter, DisplayOrderFilter


class HeroSlideFilter(DisplayOrderFilter):
    """Filter for the admin hero slide list (search on title)"""
    search_field = 'title'


class HomepageSectionFilter(ActiveStatusFilter):
    pass
