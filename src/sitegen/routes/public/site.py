"""
Public site routes
==================

One process serves every generated site. The tenant is picked from the
``Host`` header (port stripped) and all pages render that site's content
with the ``public/`` templates.

``site_api_bp`` holds the small JSON helpers the search pages call from
the browser (mounted under ``/site-api``).
"""

from datetime import datetime
from urllib.parse import quote, urlparse

import requests
from flask import Blueprint, abort, current_app, g, redirect, render_template, request
from sqlalchemy import func

from sitegen.constants import KNOWN_BOT_PATTERNS, SITE_ARTICLES_PER_PAGE
from sitegen.models import Site
from sitegen.routes.api.common import api_result, handle_service_errors
from sitegen.services import article_service, contact_service, page_service
from sitegen.services.bing_service import BingSearchClient
from sitegen.services.freestar_service import FreestarService
from sitegen.services.service_base import NotFoundError, ServiceError, ValidationError
from sitegen.utils.pagination import pagination_meta
from sitegen.utils.security import get_client_ip

site_bp = Blueprint('site', __name__)
site_api_bp = Blueprint('site_api', __name__)

# First path segments owned by other blueprints
RESERVED_SEGMENTS = {'api', 'site-api', 'static'}
STATIC_PAGES = ('about', 'terms', 'privacy')
TENANT_FREE_ENDPOINTS = {'site.outbound_redirect'}


def request_host() -> str:
    """Host header without port, lowercased."""
    return (request.host or '').split(':', 1)[0].strip().lower()


def find_site_for_host(host: str):
    if not host:
        return None
    return Site.query.filter(func.lower(Site.domain) == host).first()


def _not_found(title='Page Not Found', message='The page you are looking for does not exist.'):
    return render_template('public/not_found.html', title=title, message=message), 404


def _page_number(value) -> int:
    try:
        return max(int(value), 1)
    except (TypeError, ValueError):
        abort(404)


# ============================================================================
# TENANT RESOLUTION
# ============================================================================

@site_bp.before_request
def load_tenant():
    if request.endpoint in TENANT_FREE_ENDPOINTS:
        return None
    g.site = find_site_for_host(request_host())
    if g.site is None:
        current_app.logger.info("No site configured for host %s", request_host())
        return render_template(
            'public/not_found.html',
            title='Site Not Found',
            message=f'No site is configured for {request_host() or "this host"}.',
        ), 404
    return None


@site_bp.context_processor
def inject_site():
    site = g.get('site')
    if site is None:
        return {}
    meta = site.meta_dict()
    return {
        'site': site,
        'meta': meta,
        'accent_color': meta.get('accent_color') or '#3B82F6',
        'nav_tags': article_service.site_tags(site.domain, limit=8),
        'current_year': datetime.now().year,
    }


@site_bp.app_template_filter('display_date')
def display_date(value):
    """Format an ISO timestamp (or datetime) as ``January 5, 2025``."""
    if not value:
        return ''
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return f"{value:%B} {value.day}, {value.year}"


# ============================================================================
# LISTINGS
# ============================================================================

@site_bp.route('/')
@site_bp.route('/page/<page>')
def index(page=1):
    page = _page_number(page)
    data = article_service.list_articles(
        site_id=g.site.id, page=page, limit=SITE_ARTICLES_PER_PAGE, published_only=True
    )
    if page > 1 and page > data['totalPages']:
        return _not_found()
    return render_template(
        'public/index.html',
        articles=data['articles'],
        pagination=pagination_meta(data['total'], page, SITE_ARTICLES_PER_PAGE),
        page_url='/page/',
    )


@site_bp.route('/tag/<slug>')
def tag(slug):
    page = _page_number(request.args.get('page', 1))
    try:
        data = article_service.articles_by_tag(slug, g.site.domain, page, SITE_ARTICLES_PER_PAGE)
    except NotFoundError:
        return _not_found('Tag Not Found', f'There are no articles tagged "{slug}".')
    return render_template(
        'public/list.html',
        heading=f"Tag: {data['tag']['name']}",
        articles=data['articles'],
        pagination=data['pagination'],
        page_url=f'/tag/{quote(slug)}?page=',
    )


@site_bp.route('/author/<author>')
def author(author):
    page = _page_number(request.args.get('page', 1))
    data = article_service.articles_by_author(author, g.site.domain, page, SITE_ARTICLES_PER_PAGE)
    return render_template(
        'public/list.html',
        heading=f"Articles by {author}",
        articles=data['articles'],
        pagination=pagination_meta(data['total'], page, SITE_ARTICLES_PER_PAGE),
        page_url=f'/author/{quote(author)}?page=',
    )


# ============================================================================
# ARTICLES
# ============================================================================

def _render_article(slug):
    try:
        article = article_service.get_article(slug, site_id=g.site.id)
    except NotFoundError:
        return _not_found('Article Not Found', 'The article you are looking for does not exist.')
    if not article.published:
        return _not_found('Article Not Found', 'The article you are looking for does not exist.')
    return render_template(
        'public/article.html',
        article=article,
        related=article_service.related_articles(article),
    )


@site_bp.route('/article/<slug>')
def article(slug):
    return _render_article(slug)


@site_bp.route('/<category>/<slug>')
def category_article(category, slug):
    if category in RESERVED_SEGMENTS:
        abort(404)
    return _render_article(slug)


# ============================================================================
# STATIC PAGES
# ============================================================================

def _render_static_page(key):
    page = page_service.find_page(g.site.id, key)
    if page is None or not (page.content or '').strip():
        return render_template('public/page.html', title=key.capitalize(), content=None, coming_soon=True)
    return render_template('public/page.html', title=page.title or key.capitalize(), content=page.content,
                           coming_soon=False)


@site_bp.route('/about')
def about():
    return _render_static_page('about')


@site_bp.route('/terms')
def terms():
    return _render_static_page('terms')


@site_bp.route('/privacy')
def privacy():
    return _render_static_page('privacy')


@site_bp.route('/contact', methods=['GET', 'POST'])
def contact():
    page = page_service.find_page(g.site.id, 'contact')
    intro = page.content if page is not None else None
    if request.method == 'GET':
        return render_template('public/contact.html', intro=intro, form={}, errors=[], sent=False)

    form = {key: request.form.get(key, '') for key in ('name', 'email', 'subject', 'message')}
    try:
        contact_service.submit_contact(dict(form, siteId=g.site.id), ip_address=get_client_ip())
    except ValidationError as e:
        errors = e.details.get('errors') or [e.message]
        return render_template('public/contact.html', intro=intro, form=form, errors=errors, sent=False), 400
    return render_template('public/contact.html', intro=intro, form={}, errors=[], sent=True)


# ============================================================================
# SEARCH
# ============================================================================

@site_bp.route('/search')
@site_bp.route('/search/<keyword>')
@site_bp.route('/search/<keyword>/<page>')
def search(keyword='', page=1):
    keyword = (keyword or request.args.get('q', '')).strip()
    page = _page_number(page)
    if not keyword:
        return render_template('public/search.html', keyword='', articles=[], web_results=[], pagination=None)

    data = article_service.search_articles(g.site.domain, keyword, page, SITE_ARTICLES_PER_PAGE)
    try:
        web_results = BingSearchClient().search(keyword)
    except ServiceError as e:
        current_app.logger.warning("Bing results unavailable for %r: %s", keyword, e.message)
        web_results = []
    return render_template(
        'public/search.html',
        keyword=keyword,
        articles=data['articles'],
        web_results=web_results,
        pagination=data['pagination'],
        page_url=f'/search/{quote(keyword)}/',
    )


# ============================================================================
# OUTBOUND REDIRECT
# ============================================================================

def is_known_bot(user_agent: str) -> bool:
    ua = (user_agent or '').lower()
    return any(pattern in ua for pattern in KNOWN_BOT_PATTERNS)


def is_redirect_target(url: str) -> bool:
    parsed = urlparse(url or '')
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def send_click_postback(click_id: str, keyword: str) -> None:
    postback_url = current_app.config.get('CLICK_POSTBACK_URL')
    if not postback_url:
        return
    try:
        response = requests.get(
            postback_url,
            params={'click_id': click_id, 'ct': 'click', 'param1': keyword or ''},
            timeout=current_app.config.get('HTTP_TIMEOUT', 30),
        )
        if not response.ok:
            current_app.logger.error("Click postback failed: HTTP %s", response.status_code)
    except requests.RequestException as e:
        current_app.logger.error("Click postback failed: %s", e)


@site_bp.route('/out')
def outbound_redirect():
    """Redirect a sponsored-listing click after the automation checks."""
    user_agent = request.headers.get('User-Agent', '')
    sec_ch_ua = request.headers.get('sec-ch-ua', '')
    target = request.args.get('url', '')

    if request.args.get('js') != '1':
        current_app.logger.warning("JavaScript not detected on /out")
        return redirect('/')
    if sec_ch_ua and sec_ch_ua.replace('"', '') not in user_agent:
        current_app.logger.warning("Inconsistent client hint headers on /out")
        return redirect('/?reason=inconsistentheaders')
    if is_known_bot(user_agent):
        current_app.logger.warning("Known bot on /out: %s", user_agent)
        return redirect('/?reason=automation')
    if not is_redirect_target(target):
        return redirect('/?reason=nourl')

    click_id = request.args.get('ci')
    if click_id:
        send_click_postback(click_id, request.args.get('keyword', ''))
    return redirect(target)


# ============================================================================
# SITE API (JSON)
# ============================================================================

@site_api_bp.route('/bing/', defaults={'keyword': ''})
@site_api_bp.route('/bing/<keyword>')
@handle_service_errors
def bing_results(keyword):
    return api_result(results=BingSearchClient().search(keyword))


@site_api_bp.route('/search/', defaults={'keyword': ''})
@site_api_bp.route('/search/<keyword>')
@handle_service_errors
def sponsored_listings(keyword):
    keyword = keyword.strip()
    if not keyword:
        raise ValidationError('Missing search keyword')
    service = FreestarService()
    typecode = service.upsert_typecode(
        request_host(), keyword, src='SS', market='us',
        serve_url=f"{service.serve_url}/{keyword}",
    )
    listings = service.search_feed(keyword, ip=get_client_ip(), user_agent=request.headers.get('User-Agent', ''))
    return api_result(listings=listings, source_id=typecode.id)
