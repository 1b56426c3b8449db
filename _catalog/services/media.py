import logging
import posixpath
from urllib.parse import urlparse

from django.db import IntegrityError, transaction

from _catalog.models import Media, Variant

logger = logging.getLogger(__name__)


class MediaDeduplicator:
    """
    One media row per image.

    Variant photos are deduplicated on (url, variant) since each SKU is
    expected to have its own shots. Product-level images are deduplicated on
    the url alone against every live row: a url already stored for a variant
    or another product is reused, not stored again.
    """

    def attach(self, owner, urls):
        """Attach ``urls`` to a ``Variant`` or ``Product``; returns the media ids in input order."""
        if isinstance(owner, Variant):
            product_id, variant = owner.product_id, owner
        else:
            product_id, variant = owner.pk, None

        media_ids = []
        seen = set()
        for raw in urls or []:
            url = (raw or '').strip()
            if not url or url in seen:
                continue
            seen.add(url)
            media, created = self._get_or_insert(url, product_id, variant)
            if created:
                logger.debug('attached %s', url, extra={'media_url': url, 'variant_id': getattr(variant, 'pk', None)})
            media_ids.append(media.pk)
        return media_ids

    def _lookup(self, url, variant):
        qs = Media.objects.live().filter(url=url)
        if variant is not None:
            return qs.filter(variant=variant)
        return qs.order_by('pk')

    def _get_or_insert(self, url, product_id, variant):
        existing = self._lookup(url, variant).first()
        if existing is not None:
            return existing, False
        try:
            with transaction.atomic():
                media = Media.objects.create(
                    name=posixpath.basename(urlparse(url).path)[:255],
                    product_id=product_id,
                    variant=variant,
                    url=url,
                    type='image',
                    metadata={'source': 'feed'},
                )
        except IntegrityError:
            existing = self._lookup(url, variant).first()
            if existing is None:
                raise
            return existing, False
        return media, True
