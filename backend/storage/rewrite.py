"""
Point stored image URLs at the destination store after a migration.

Only URLs whose object reached the destination (copied or already there)
are rewritten; failed keys keep their old URL so they still resolve.
"""
import logging
from urllib.parse import unquote

from django.db import transaction
from django.utils import timezone

from backend.catalog.models import Category
from backend.core.utils import create_audit_log
from backend.storefront.models import HeroSlide, HomepageSection

logger = logging.getLogger(__name__)

# (model, field) pairs holding a plain image URL
IMAGE_URL_FIELDS = [
    (HeroSlide, 'image_url'),
    (Category, 'image_url'),
]


def _normalize_base(url):
    return url.rstrip('/') + '/'


def _rewrite(url, source_base_url, destination_base_url, migrated):
    """New URL for url, or None when it should stay as is"""
    if not url or not url.startswith(source_base_url):
        return None
    suffix = url[len(source_base_url):]
    key = unquote(suffix.split('?', 1)[0])
    if key not in migrated:
        return None
    return destination_base_url + suffix


def rewrite_image_urls(report, source_base_url, destination_base_url):
    """
    Rewrite image URLs of migrated objects from the source to the destination base URL.

    Returns:
        dict of model name -> number of rows rewritten
    """
    if report.dry_run:
        raise ValueError('Cannot rewrite URLs from a dry-run report')

    source_base_url = _normalize_base(source_base_url)
    destination_base_url = _normalize_base(destination_base_url)
    migrated = report.migrated_keys
    now = timezone.now()
    counts = {}

    with transaction.atomic():
        for model, field_name in IMAGE_URL_FIELDS:
            changed = []
            rows = model.objects.select_for_update().filter(**{f'{field_name}__startswith': source_base_url})
            for obj in rows:
                new_url = _rewrite(getattr(obj, field_name), source_base_url, destination_base_url, migrated)
                if new_url:
                    setattr(obj, field_name, new_url)
                    obj.updated_at = now
                    changed.append(obj)
            if changed:
                model.objects.bulk_update(changed, [field_name, 'updated_at'])
            counts[model.__name__] = len(changed)

        # Homepage banners keep their image inside the section config
        changed = []
        sections = HomepageSection.objects.select_for_update().filter(
            config__banner__image_url__startswith=source_base_url)
        for section in sections:
            banner = section.config['banner']
            new_url = _rewrite(banner.get('image_url'), source_base_url, destination_base_url, migrated)
            if new_url:
                banner['image_url'] = new_url
                section.updated_at = now
                changed.append(section)
        if changed:
            HomepageSection.objects.bulk_update(changed, ['config', 'updated_at'])
        counts[HomepageSection.__name__] = len(changed)

        for model_name, count in counts.items():
            if count:
                create_audit_log(
                    action='url_rewrite',
                    model_name=model_name,
                    object_id='*',
                    object_name=f'{count} rows',
                    changes={'from': source_base_url, 'to': destination_base_url},
                )

    logger.info(f"Rewrote image URLs: {counts}")
    return counts
