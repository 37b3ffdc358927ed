import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework.response import Response

from .exceptions import NotFoundError, ValidationError
from .models import AuditLog
from .ordering import reorder
from .pagination import paginated_response
from .serializers import AuditLogSerializer, ReorderSerializer
from .utils import create_audit_log

logger = logging.getLogger(__name__)


def reorder_response(request, model_or_queryset, model_name, scope=None):
    """
    Shared body of the POST .../reorder/ endpoints.

    Validates {"ids": [...]}, applies the new order atomically and answers
    204 with no body. Validation problems answer 400, unknown ids 404.
    """
    serializer = ReorderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    ids = serializer.validated_data['ids']
    try:
        count = reorder(model_or_queryset, ids, scope=scope)
    except ValidationError as e:
        return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)
    except NotFoundError as e:
        return Response(e.as_response_data(), status=status.HTTP_404_NOT_FOUND)
    except Exception as e:
        logger.error(f"Error reordering {model_name}: {str(e)}", exc_info=True)
        raise

    create_audit_log(
        request=request,
        action='reorder',
        model_name=model_name,
        object_id=str(ids[0]),
        object_name=f'{count} items',
        changes={'ids': [str(i) for i in ids]},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def audit_log_list(request):
    """List audit log entries, newest first (filter by ?action= and ?model_name=)"""
    queryset = AuditLog.objects.select_related('user')
    action = request.query_params.get('action')
    if action:
        queryset = queryset.filter(action=action)
    model_name = request.query_params.get('model_name')
    if model_name:
        queryset = queryset.filter(model_name=model_name)
    return paginated_response(request, queryset, AuditLogSerializer)
