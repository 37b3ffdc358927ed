import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAdminUser
from rest_framework.response import Response

from backend.core.pagination import paginated_response
from backend.core.utils import create_audit_log
from backend.core.views import reorder_response
from .filters import HeroSlideFilter, HomepageSectionFilter
from .models import HeroSlide, HomepageSection
from .serializers import (
    HeroSlideSerializer, PublicHeroSlideSerializer,
    HomepageSectionSerializer, PublicHomepageSectionSerializer,
)

logger = logging.getLogger(__name__)


# Hero slides

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def hero_slide_list_create(request):
    """List hero slides (paginated, filterable) or create a new slide"""
    if request.method == 'GET':
        filterset = HeroSlideFilter(request.query_params, queryset=HeroSlide.objects.all())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs, HeroSlideSerializer)

    serializer = HeroSlideSerializer(data=request.data)
    if serializer.is_valid():
        slide = serializer.save()
        logger.info(f"Hero slide created: {slide.id}")
        create_audit_log(request=request, action='create', model_name='HeroSlide',
                         object_id=slide.id, object_name=slide.title)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def hero_slide_detail(request, pk):
    """Retrieve, update or delete a hero slide"""
    slide = get_object_or_404(HeroSlide, pk=pk)

    if request.method == 'GET':
        return Response(HeroSlideSerializer(slide).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = HeroSlideSerializer(slide, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Hero slide updated: {slide.id}")
            create_audit_log(request=request, action='update', model_name='HeroSlide',
                             object_id=slide.id, object_name=slide.title,
                             changes={k: str(v) for k, v in serializer.validated_data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        slide_id, slide_title = slide.id, slide.title
        slide.delete()
        logger.info(f"Hero slide deleted: {slide_id}")
        create_audit_log(request=request, action='delete', model_name='HeroSlide',
                         object_id=slide_id, object_name=slide_title)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def hero_slide_reorder(request):
    """Reorder hero slides by drag-drop. Body: {"ids": [...]}"""
    return reorder_response(request, HeroSlide, 'HeroSlide')


@api_view(['GET'])
@permission_classes([AllowAny])
def public_hero_slides(request):
    """Active hero slides for the storefront carousel"""
    slides = HeroSlide.objects.filter(is_active=True).order_by('display_order', 'created_at')
    return Response(PublicHeroSlideSerializer(slides, many=True).data)


# Homepage sections

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def homepage_section_list_create(request):
    """List homepage sections or create a new one (config is validated)"""
    if request.method == 'GET':
        queryset = HomepageSection.objects.select_related('category')
        filterset = HomepageSectionFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs.order_by('display_order', 'created_at'),
                                  HomepageSectionSerializer)

    serializer = HomepageSectionSerializer(data=request.data)
    if serializer.is_valid():
        section = serializer.save()
        logger.info(f"Homepage section created: {section.id}")
        create_audit_log(request=request, action='create', model_name='HomepageSection',
                         object_id=section.id, object_name=str(section))
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def homepage_section_detail(request, pk):
    section = get_object_or_404(HomepageSection.objects.select_related('category'), pk=pk)

    if request.method == 'GET':
        return Response(HomepageSectionSerializer(section).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = HomepageSectionSerializer(section, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            logger.info(f"Homepage section updated: {section.id}")
            create_audit_log(request=request, action='update', model_name='HomepageSection',
                             object_id=section.id, object_name=str(section),
                             changes={k: str(v) for k, v in serializer.validated_data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        section_id, section_name = section.id, str(section)
        section.delete()
        logger.info(f"Homepage section deleted: {section_id}")
        create_audit_log(request=request, action='delete', model_name='HomepageSection',
                         object_id=section_id, object_name=section_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def homepage_section_reorder(request):
    """Reorder homepage sections by drag-drop. Body: {"ids": [...]}"""
    return reorder_response(request, HomepageSection, 'HomepageSection')


@api_view(['GET'])
@permission_classes([AllowAny])
def public_homepage_sections(request):
    """Active homepage sections with their category summary"""
    sections = (HomepageSection.objects
                .filter(is_active=True)
                .select_related('category')
                .order_by('display_order', 'created_at'))
    return Response(PublicHomepageSectionSerializer(sections, many=True).data)
