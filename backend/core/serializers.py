from rest_framework import serializers

from .models import AuditLog


class ReorderSerializer(serializers.Serializer):
    """Body of every reorder endpoint: {"ids": [uuid, ...]} in the new order"""
    ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
    )

    def validate_ids(self, value):
        not_v4 = [str(v) for v in value if v.version != 4]
        if not_v4:
            raise serializers.ValidationError(f"Must be UUID v4 values: {', '.join(not_v4)}")

        seen = set()
        duplicates = []
        for v in value:
            if v in seen and str(v) not in duplicates:
                duplicates.append(str(v))
            seen.add(v)
        if duplicates:
            raise serializers.ValidationError(f"Duplicate ids: {', '.join(duplicates)}")
        return value


class ListQuerySerializer(serializers.Serializer):
    """Pagination query parameters shared by the admin list endpoints"""
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, required=False, default=20)


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'username', 'action', 'model_name', 'object_id', 'object_name',
                  'changes', 'ip_address', 'created_at']
