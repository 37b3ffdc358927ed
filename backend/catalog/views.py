import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework.response import Response

from backend.core.exceptions import ValidationError
from backend.core.pagination import paginated_response
from backend.core.utils import create_audit_log
from backend.core.views import reorder_response
from .filters import CategoryFilter
from .models import Category
from .serializers import CategorySerializer

logger = logging.getLogger(__name__)


def same_parent_scope(categories):
    """Categories can only be reordered within one parent level"""
    parent_ids = {c.parent_id for c in categories}
    if len(parent_ids) > 1:
        raise ValidationError('Cannot reorder categories with different parents', field='ids')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def category_list_create(request):
    """List categories (paginated, filterable) or create a new category"""
    if request.method == 'GET':
        queryset = Category.objects.select_related('parent')
        filterset = CategoryFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs, CategorySerializer)

    serializer = CategorySerializer(data=request.data)
    if serializer.is_valid():
        category = serializer.save()
        logger.info(f"Category created: {category.id}")
        create_audit_log(request=request, action='create', model_name='Category',
                         object_id=category.id, object_name=category.name)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category.objects.select_related('parent'), pk=pk)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Category updated: {category.id}")
            create_audit_log(request=request, action='update', model_name='Category',
                             object_id=category.id, object_name=category.name,
                             changes={k: str(v) for k, v in serializer.validated_data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if category.children.exists():
            return Response({'error': 'Cannot delete category with child categories'},
                            status=status.HTTP_400_BAD_REQUEST)
        category_id, category_name = category.id, category.name
        category.delete()
        logger.info(f"Category deleted: {category_id}")
        create_audit_log(request=request, action='delete', model_name='Category',
                         object_id=category_id, object_name=category_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def category_reorder(request):
    """
    Reorder categories within one parent level by drag-drop

    Body: {"ids": ["uuid1", "uuid2", ...]}; position becomes display_order.
    """
    return reorder_response(request, Category, 'Category', scope=same_parent_scope)
