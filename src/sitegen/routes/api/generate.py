"""
AI generation API routes
========================

Titles, articles, featured images, logos and favicons. Outside production
every generator answers with canned data so the console works without
vendor keys.
"""

from flask import Blueprint, current_app
from flask_login import current_user

from sitegen.services import article_service, site_service
from sitegen.services.ai_content_service import AIContentService
from sitegen.services.image_service import ImageService, generate_favicon
from sitegen.services.service_base import ValidationError, text_field
from .common import api_result, handle_service_errors, request_data


generate_bp = Blueprint('generate_api', __name__)


def _int_field(data, key, default):
    try:
        return int(data.get(key, default))
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")


@generate_bp.route('/articles/generate/title', methods=['POST'])
@handle_service_errors
def generate_titles():
    data = request_data()
    niche = text_field(data, 'niche')
    if not niche:
        raise ValidationError("niche is required")
    titles = AIContentService().generate_titles(
        niche,
        _int_field(data, 'count', 10),
        content_style=data.get('contentStyle', ''),
        tone=data.get('tone', ''),
        language=data.get('language') or 'English',
    )
    return api_result(titles=titles)


@generate_bp.route('/articles/generate/article', methods=['POST'])
@handle_service_errors
def generate_articles():
    data = request_data()
    titles = data.get('titles') or []
    if not isinstance(titles, list):
        raise ValidationError("titles must be a list")
    titles = [text_field(t, 'title') if isinstance(t, dict) else str(t).strip() for t in titles]
    articles = AIContentService().generate_articles(
        [t for t in titles if t],
        niche=data.get('niche', ''),
        tone=data.get('tone', ''),
        content_style=data.get('contentStyle', ''),
        language=data.get('language') or 'English',
    )
    return api_result(articles=articles)


@generate_bp.route('/articles/generate/single-article', methods=['POST'])
@handle_service_errors
def generate_single_article():
    data = request_data()
    result = AIContentService().generate_single_article(
        text_field(data, 'title'),
        tone=data.get('tone', ''),
        content_style=data.get('contentStyle', ''),
        language=data.get('language') or 'English',
        article_id=data.get('id'),
    )
    return api_result(**result)


@generate_bp.route('/articles/generate/image', methods=['POST'])
@handle_service_errors
def generate_article_image():
    """Featured image for an article, optionally attached to ``articleId`` right away."""
    data = request_data()
    site_id = text_field(data, 'siteId')
    folder = 'generated'
    if site_id:
        site_service.get_owned_site(current_user, site_id)
        folder = f"{site_id}/articles"

    result = ImageService().generate_article_image(
        text_field(data, 'title'), prompt=text_field(data, 'prompt'), folder=folder
    )
    article_id = text_field(data, 'articleId')
    if article_id:
        article_service.set_article_image(current_user, article_id, result['imageUrl'])
        current_app.logger.info("Attached generated image to article %s", article_id)
    return api_result(imageUrl=result['imageUrl'], prompt=result['prompt'])


@generate_bp.route('/generate-image', methods=['POST'])
@handle_service_errors
def generate_image():
    data = request_data()
    title = text_field(data, 'title', 'prompt')
    result = ImageService().generate_article_image(title, prompt=text_field(data, 'prompt'))
    return api_result(imageUrl=result['imageUrl'], imagePrompt=result['prompt'])


@generate_bp.route('/generate-logo-ai', methods=['POST'])
@handle_service_errors
def generate_logo():
    data = request_data()
    result = ImageService().generate_logo(
        text_field(data, 'siteName', 'text'),
        color=data.get('color') or '#000000',
        style=data.get('style') or 'vintage',
    )
    return api_result(logoUrl=result['logoUrl'], prompt=result['prompt'])


@generate_bp.route('/generate-favicon-ai', methods=['POST'])
@handle_service_errors
def generate_favicon_ai():
    data = request_data()
    result = generate_favicon(text_field(data, 'siteName', 'text'), data.get('color'))
    return api_result(**result)
