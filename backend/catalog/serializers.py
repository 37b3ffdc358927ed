from django.utils.text import slugify
from rest_framework import serializers

from .models import Category


class CategorySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'image_url']


class CategorySerializer(serializers.ModelSerializer):
    slug = serializers.SlugField(max_length=220, required=False)
    parent_name = serializers.CharField(source='parent.name', read_only=True, default=None)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'parent', 'parent_name', 'description', 'image_url',
                  'display_order', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_parent(self, value):
        if value is None or self.instance is None:
            return value
        if value.pk == self.instance.pk:
            raise serializers.ValidationError('A category cannot be its own parent')
        # The new parent must not sit below this category
        seen = set()
        ancestor = value.parent
        while ancestor is not None and ancestor.pk not in seen:
            if ancestor.pk == self.instance.pk:
                raise serializers.ValidationError('Cannot set parent: would create circular reference')
            seen.add(ancestor.pk)
            ancestor = ancestor.parent
        return value

    def validate(self, attrs):
        if not attrs.get('slug') and attrs.get('name') and self.instance is None:
            attrs['slug'] = slugify(attrs['name'])
        slug = attrs.get('slug')
        if slug:
            clash = Category.objects.filter(slug=slug)
            if self.instance is not None:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError({'slug': 'A category with this slug already exists'})
        return attrs
