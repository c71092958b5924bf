"""Tag listing for the site frontends."""

from flask import Blueprint, request

from sitegen.constants import TAGS_DEFAULT_LIMIT
from sitegen.services import article_service
from .common import api_result, handle_service_errors, public_endpoint


tags_bp = Blueprint('tags_api', __name__)


@tags_bp.route('/get', methods=['GET'])
@public_endpoint
@handle_service_errors
def list_tags():
    limit = request.args.get('limit', type=int) or TAGS_DEFAULT_LIMIT
    tags = article_service.site_tags(request.args.get('domain', ''), max(1, min(limit, 100)))
    return api_result(tags=tags)
