"""Article Service Layer
======================

Persistence of generated and edited articles, tag upserts and the read
queries used by both the admin console and the public renderer.
"""
from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import func, or_

from ..constants import ARTICLES_DEFAULT_LIMIT, GENERATION_META_KEYS, TAGS_DEFAULT_LIMIT
from ..extensions import db
from ..models import Article, ArticleTag, Site, Tag, User
from ..utils.pagination import paginate, pagination_meta
from ..utils.security import is_valid_uuid
from ..utils.slug_utils import next_available_slug, sanitize_slug, tag_display_name
from ..utils.time import utc_now
from .service_base import NotFoundError, OperationError, ValidationError, text_field
from .site_service import ensure_site_owner, get_site_by_domain, get_site_or_404

logger = logging.getLogger(__name__)

RANDOM_DATE_WINDOW = timedelta(days=90)
RELATED_ARTICLES_LIMIT = 3
SLUG_MAX_LENGTH = 200


def generate_unique_slug(title: str, site_id: str, exclude_article_id: Optional[str] = None) -> str:
    """Slug of ``title`` made unique within the site (``base``, ``base-2``, ...)."""
    def is_taken(candidate: str) -> bool:
        query = Article.query.filter_by(site_id=site_id, slug=candidate)
        if exclude_article_id:
            query = query.filter(Article.id != exclude_article_id)
        return db.session.query(query.exists()).scalar()

    return next_available_slug(sanitize_slug(title), is_taken, max_length=SLUG_MAX_LENGTH)


def random_recent_date():
    """A moment within the last three months, so a new batch does not share one timestamp."""
    offset = random.uniform(0, RANDOM_DATE_WINDOW.total_seconds())
    return utc_now() - timedelta(seconds=offset)


def parse_tag_names(tags: Any) -> List[str]:
    """Accept a list of names or a comma separated string."""
    if isinstance(tags, str):
        tags = tags.split(',')
    elif tags is not None and not isinstance(tags, list):
        raise ValidationError("tags must be a list or a comma separated string")
    names = []
    for name in tags or []:
        name = str(name).strip()
        if name and name.lower() not in (n.lower() for n in names):
            names.append(name)
    return names


def upsert_tags(names: Iterable[str]) -> List[Tag]:
    tags = []
    for name in names:
        slug = sanitize_slug(name)
        if not slug:
            continue
        tag = Tag.query.filter_by(slug=slug).first()
        if tag is None:
            tag = Tag(name=tag_display_name(name), slug=slug)
            db.session.add(tag)
            db.session.flush()
        if tag not in tags:
            tags.append(tag)
    return tags


def _set_tags(article: Article, names: Iterable[str]) -> None:
    # reuse surviving links so the (article, tag) unique key is never inserted twice
    existing = {at.tag_id: at for at in article.article_tags}
    article.article_tags = [existing.get(tag.id) or ArticleTag(tag=tag) for tag in upsert_tags(names)]


def _owned_site(user: User, site_id: str) -> Site:
    if not site_id or not is_valid_uuid(site_id):
        raise ValidationError("Invalid siteId format")
    site = get_site_or_404(site_id)
    ensure_site_owner(user, site)
    return site


def _store_image(source: Optional[str], slug: str, site_id: str, image_service) -> Optional[str]:
    """Re-host data URLs and foreign images under ``{site_id}/articles``; keeps the source on failure."""
    if not source:
        return None
    cfg = current_app.config
    cdn = (cfg.get('DO_SPACES_CDN_URL') or '').rstrip('/')
    is_data_url = source.startswith('data:')
    if not is_data_url and (not cfg.get('IS_PRODUCTION') or (cdn and source.startswith(cdn))):
        return source
    try:
        if image_service is None:
            from .image_service import ImageService
            image_service = ImageService()
        return image_service.store_article_image(source, slug, f"{site_id}/articles")
    except (ValidationError, OperationError) as e:
        logger.error("Failed to store image for article %s: %s", slug, e)
        return None if is_data_url else source


def _resolve_site(site_id: Optional[str] = None, domain: Optional[str] = None) -> Site:
    if site_id:
        return get_site_or_404(site_id)
    if domain:
        return get_site_by_domain(domain)
    raise ValidationError("siteId or domain parameter is required")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def save_articles(user: User, data: Dict[str, Any], image_service=None) -> Dict[str, Any]:
    """Persist a batch from the generator and remember the generator settings on the site."""
    site = _owned_site(user, text_field(data, 'siteId'))
    items = data.get('articles')
    if not isinstance(items, list) or not items:
        raise ValidationError("articles are required")

    saved = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Every article must be an object")
        title = text_field(item, 'title')
        if not title:
            raise ValidationError("Every article needs a title")
        slug = generate_unique_slug(text_field(item, 'slug') or title, site.id)
        created = random_recent_date()
        image = text_field(item, 'featuredImage', 'imageUrl', 'image_url') or None
        article = Article(
            site_id=site.id,
            title=title,
            slug=slug,
            content=text_field(item, 'content'),
            image_url=_store_image(image, slug, site.id, image_service),
            meta_title=text_field(item, 'metaTitle') or title,
            meta_description=text_field(item, 'metaDescription'),
            meta_keywords=text_field(item, 'metaKeywords'),
            author=text_field(item, 'author') or text_field(data, 'author') or user.username,
            created_at=created,
            updated_at=created,
        )
        db.session.add(article)
        _set_tags(article, parse_tag_names(item.get('tags')))
        db.session.flush()
        saved.append(article)

    for key in GENERATION_META_KEYS:
        if key in data:
            site.set_meta(key, str(data.get(key) or ''))
    db.session.commit()
    logger.info("Saved %d article(s) for site %s", len(saved), site.domain)
    return {'saved': len(saved), 'articles': [a.to_dict() for a in saved]}


def update_article(user: User, data: Dict[str, Any], image_upload: Optional[bytes] = None,
                   storage=None) -> Dict[str, Any]:
    article_id = text_field(data, 'articleId', 'id')
    title = text_field(data, 'title')
    if not article_id or not title:
        raise ValidationError("Missing required fields")
    if not is_valid_uuid(article_id):
        raise ValidationError("Invalid ID format")

    article = db.session.get(Article, article_id)
    if article is None:
        raise NotFoundError("Article not found")
    ensure_site_owner(user, article.site)

    if title != article.title:
        article.slug = generate_unique_slug(title, article.site_id, exclude_article_id=article.id)
    article.title = title
    for field, key in (('content', 'content'), ('meta_title', 'meta_title'),
                       ('meta_description', 'meta_description'), ('meta_keywords', 'meta_keywords'),
                       ('author', 'author')):
        if key in data:
            setattr(article, field, data.get(key))
    if 'published' in data:
        article.published = str(data.get('published')).lower() in ('true', '1', 'yes')

    if image_upload:
        from .image_service import compress_to_webp, image_filename
        from .storage_service import StorageService
        webp, _ = compress_to_webp(image_upload)
        article.image_url = (storage or StorageService()).upload_bytes(
            webp, image_filename(article.slug), f"{article.site_id}/articles", 'image/webp'
        )
    elif data.get('image_url'):
        article.image_url = data['image_url']

    if 'tags' in data:
        _set_tags(article, parse_tag_names(data.get('tags')))
    db.session.commit()
    return article.to_dict()


def set_article_image(user: User, article_id: str, image_url: str) -> None:
    article = db.session.get(Article, article_id)
    if article is None:
        raise NotFoundError("Article not found")
    ensure_site_owner(user, article.site)
    article.image_url = image_url
    db.session.commit()


def delete_article(user: User, article_id: str) -> None:
    if not article_id:
        raise ValidationError("Article ID is required")
    article = db.session.get(Article, article_id)
    if article is None:
        raise NotFoundError("Article not found")
    ensure_site_owner(user, article.site)
    db.session.delete(article)
    db.session.commit()
    logger.info("Deleted article %s", article_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_articles(site_id: Optional[str] = None, domain: Optional[str] = None, page: int = 1,
                  limit: int = ARTICLES_DEFAULT_LIMIT, published_only: bool = False) -> Dict[str, Any]:
    site = _resolve_site(site_id, domain)
    query = Article.query.filter_by(site_id=site.id)
    if published_only:
        query = query.filter_by(published=True)
    articles, total = paginate(query.order_by(Article.created_at.desc()), page, limit)
    meta = pagination_meta(total, page, limit)
    return {
        'articles': [a.to_dict() for a in articles],
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': meta['totalPages'],
    }


def search_articles(domain: str, query_text: str, page: int = 1,
                    limit: int = ARTICLES_DEFAULT_LIMIT) -> Dict[str, Any]:
    site = get_site_by_domain(domain)
    query_text = (query_text or '').strip()
    if not query_text:
        raise ValidationError("Search query is required")
    like = f"%{query_text}%"
    query = (
        Article.query
        .filter(Article.site_id == site.id, Article.published.is_(True))
        .filter(or_(Article.title.ilike(like), Article.content.ilike(like)))
        .order_by(Article.created_at.desc())
    )
    articles, total = paginate(query, page, limit)
    return {
        'articles': [a.to_dict(include_content=False) for a in articles],
        'total': total,
        'pagination': pagination_meta(total, page, limit),
    }


def get_article(slug: str, site_id: Optional[str] = None, domain: Optional[str] = None) -> Article:
    site = _resolve_site(site_id, domain)
    article = Article.query.filter_by(site_id=site.id, slug=slug).first()
    if article is None:
        raise NotFoundError("Article not found")
    return article


def related_articles(article: Article, limit: int = RELATED_ARTICLES_LIMIT) -> List[Article]:
    """Articles of the same site sharing a tag, topped up with the latest ones."""
    base = Article.query.filter(
        Article.site_id == article.site_id, Article.id != article.id, Article.published.is_(True)
    )
    tag_ids = [at.tag_id for at in article.article_tags]
    related: List[Article] = []
    if tag_ids:
        related = (
            base.join(ArticleTag, ArticleTag.article_id == Article.id)
            .filter(ArticleTag.tag_id.in_(tag_ids))
            .order_by(Article.created_at.desc())
            .distinct()
            .limit(limit)
            .all()
        )
    if len(related) < limit:
        seen = [a.id for a in related] or ['']
        related += base.filter(Article.id.notin_(seen)).order_by(Article.created_at.desc()).limit(
            limit - len(related)
        ).all()
    return related


def articles_by_author(author: str, domain: str, page: int = 1,
                       limit: int = ARTICLES_DEFAULT_LIMIT) -> Dict[str, Any]:
    site = get_site_by_domain(domain)
    query = (
        Article.query
        .filter(Article.site_id == site.id, Article.published.is_(True))
        .filter(func.lower(Article.author) == (author or '').strip().lower())
        .order_by(Article.created_at.desc())
    )
    articles, total = paginate(query, page, limit)
    return {'articles': [a.to_dict(include_content=False) for a in articles], 'total': total}


def articles_by_tag(tag_slug: str, domain: str, page: int = 1,
                    limit: int = ARTICLES_DEFAULT_LIMIT) -> Dict[str, Any]:
    if not domain or not tag_slug:
        raise ValidationError("Domain and tag parameters are required")
    site = get_site_by_domain(domain)
    tag = Tag.query.filter_by(slug=tag_slug).first()
    if tag is None:
        raise NotFoundError("Tag not found")
    query = (
        Article.query
        .join(ArticleTag, ArticleTag.article_id == Article.id)
        .filter(Article.site_id == site.id, Article.published.is_(True), ArticleTag.tag_id == tag.id)
        .order_by(Article.created_at.desc())
    )
    articles, total = paginate(query, page, limit)
    return {
        'tag': tag.to_dict(),
        'articles': [a.to_dict(include_content=False) for a in articles],
        'total': total,
        'pagination': pagination_meta(total, page, limit),
    }


def site_tags(domain: str, limit: int = TAGS_DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    """Tags used by the site's articles, most used first."""
    site = get_site_by_domain(domain)
    usage = func.count(ArticleTag.id).label('usage')
    rows = (
        db.session.query(Tag, usage)
        .join(ArticleTag, ArticleTag.tag_id == Tag.id)
        .join(Article, Article.id == ArticleTag.article_id)
        .filter(Article.site_id == site.id)
        .group_by(Tag.id)
        .order_by(usage.desc(), Tag.name)
        .limit(limit)
        .all()
    )
    return [dict(tag.to_dict(), count=count) for tag, count in rows]
