"""
Article API routes
==================

Admin article CRUD and the public readers (by slug, search, author, tag)
used by the site frontends.
"""

from flask import Blueprint, request
from flask_login import current_user

from sitegen.services import article_service, site_service
from .common import (
    api_result, get_pagination_params, handle_service_errors, public_endpoint, request_data, uploaded_bytes,
)


articles_bp = Blueprint('articles_api', __name__)


@articles_bp.route('/save', methods=['POST'])
@handle_service_errors
def save_articles():
    result = article_service.save_articles(current_user, request_data())
    return api_result(status=201, message='Articles saved successfully', **result)


@articles_bp.route('/update', methods=['PUT'])
@handle_service_errors
def update_article():
    article = article_service.update_article(current_user, request_data(), image_upload=uploaded_bytes('image'))
    return api_result(message='Article updated successfully', article=article)


@articles_bp.route('/delete', methods=['DELETE'])
@handle_service_errors
def delete_article():
    article_id = request.args.get('id') or request_data().get('id')
    article_service.delete_article(current_user, article_id)
    return api_result(message='Article deleted successfully')


@articles_bp.route('/get', methods=['GET'])
@handle_service_errors
def list_articles():
    """Admin listing; a ``siteId`` must belong to the caller."""
    site_id = request.args.get('siteId')
    domain = request.args.get('domain')
    if site_id:
        site_service.get_owned_site(current_user, site_id)
    page, limit = get_pagination_params()
    return api_result(**article_service.list_articles(site_id=site_id, domain=domain, page=page, limit=limit))


@articles_bp.route('/get/search', methods=['GET'])
@public_endpoint
@handle_service_errors
def search_articles():
    page, limit = get_pagination_params()
    result = article_service.search_articles(
        request.args.get('domain', ''), request.args.get('query', ''), page, limit
    )
    return api_result(**result)


@articles_bp.route('/get/<slug>', methods=['GET'])
@public_endpoint
@handle_service_errors
def get_article(slug):
    article = article_service.get_article(
        slug, site_id=request.args.get('siteId'), domain=request.args.get('domain')
    )
    related = article_service.related_articles(article)
    return api_result(
        article=article.to_dict(),
        relatedArticles=[a.to_dict(include_content=False) for a in related],
    )


@articles_bp.route('/getByAuthor/<author>', methods=['GET'])
@public_endpoint
@handle_service_errors
def articles_by_author(author):
    page, limit = get_pagination_params()
    return api_result(**article_service.articles_by_author(author, request.args.get('domain', ''), page, limit))


@articles_bp.route('/getByTag/<slug>', methods=['GET'])
@public_endpoint
@handle_service_errors
def articles_by_tag(slug):
    page, limit = get_pagination_params()
    return api_result(**article_service.articles_by_tag(slug, request.args.get('domain', ''), page, limit))
