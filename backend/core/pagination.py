from django.core.paginator import EmptyPage, Paginator
from rest_framework import status
from rest_framework.response import Response

from .serializers import ListQuerySerializer


def paginated_response(request, queryset, serializer_class, context=None):
    """
    Validate page/limit query params and return one page of serialized results.

    Invalid params produce a 400 response with field errors. A page past the
    end answers 200 with an empty results list.
    """
    query = ListQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

    page = query.validated_data['page']
    limit = query.validated_data['limit']

    paginator = Paginator(queryset, limit)
    try:
        page_obj = paginator.page(page)
    except EmptyPage:
        return Response({
            'results': [],
            'count': paginator.count,
            'next': None,
            'previous': paginator.num_pages,
            'page': page,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    })
