from rest_framework import serializers

from backend.catalog.serializers import CategorySummarySerializer
from .models import HeroSlide, HomepageSection


class HeroSlideSerializer(serializers.ModelSerializer):
    class Meta:
        model = HeroSlide
        fields = ['id', 'title', 'subtitle', 'image_url', 'gradient', 'link',
                  'display_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']
        extra_kwargs = {'display_order': {'min_value': 0}}


class PublicHeroSlideSerializer(serializers.ModelSerializer):
    class Meta:
        model = HeroSlide
        fields = ['id', 'title', 'subtitle', 'image_url', 'gradient', 'link', 'display_order']


# Nested homepage section config

class LayoutConfigSerializer(serializers.Serializer):
    row_count = serializers.ChoiceField(choices=[1, 2])
    display_style = serializers.ChoiceField(choices=['slider', 'grid', 'carousel'])
    product_limit = serializers.IntegerField(min_value=4, max_value=24)
    columns = serializers.IntegerField(min_value=2, max_value=6, required=False)
    autoplay_delay = serializers.IntegerField(min_value=2000, max_value=10000, required=False)


class AutoFillConfigSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()
    criteria = serializers.ChoiceField(choices=['newest', 'best_selling', 'featured', 'random'])
    min_stock = serializers.IntegerField(min_value=0, required=False)
    exclude_out_of_stock = serializers.BooleanField(required=False)


class ProductsConfigSerializer(serializers.Serializer):
    selected_product_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    auto_fill = AutoFillConfigSerializer()

    def validate_selected_product_ids(self, value):
        for product_id in value:
            if product_id.version != 4:
                raise serializers.ValidationError(f'{product_id} is not a valid UUID v4')
        return [str(product_id) for product_id in value]


class BannerConfigSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()
    image_url = serializers.CharField(required=False, allow_blank=True)
    link_url = serializers.CharField(required=False, allow_blank=True)
    alt_text = serializers.CharField(required=False, allow_blank=True)
    position = serializers.ChoiceField(choices=['left', 'right'], required=False)
    width_ratio = serializers.IntegerField(min_value=10, max_value=50, required=False)


class DisplayConfigSerializer(serializers.Serializer):
    show_category_header = serializers.BooleanField()
    custom_title = serializers.CharField(required=False, allow_blank=True)
    show_view_all_link = serializers.BooleanField()
    animation = serializers.ChoiceField(choices=['fade', 'slide', 'none'], required=False)


class SectionConfigSerializer(serializers.Serializer):
    layout = LayoutConfigSerializer()
    products = ProductsConfigSerializer()
    banner = BannerConfigSerializer(required=False)
    display = DisplayConfigSerializer()


class HomepageSectionSerializer(serializers.ModelSerializer):
    category_detail = CategorySummarySerializer(source='category', read_only=True)

    class Meta:
        model = HomepageSection
        fields = ['id', 'category', 'category_detail', 'config', 'display_order', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_config(self, value):
        config = SectionConfigSerializer(data=value)
        if not config.is_valid():
            raise serializers.ValidationError(config.errors)
        return config.validated_data


class PublicHomepageSectionSerializer(serializers.ModelSerializer):
    category = CategorySummarySerializer(read_only=True)

    class Meta:
        model = HomepageSection
        fields = ['id', 'category', 'config', 'display_order']
