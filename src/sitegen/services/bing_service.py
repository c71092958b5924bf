"""Bing Web Search client with a per-keyword disk cache.

Successful responses are written to ``{cache_dir}/{quote(keyword)}.txt``
and served from there on later calls; failed calls are never cached.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from flask import current_app

from .service_base import OperationError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PARAMS = {
    'mkt': 'en-US',
    'responseFilter': 'webpages',
    'safeSearch': 'strict',
}


class BingSearchClient:
    def __init__(self, api_key: Optional[str] = None, endpoint: Optional[str] = None,
                 cache_dir: Optional[str] = None):
        cfg = current_app.config
        self.api_key = api_key if api_key is not None else cfg.get('BING_API_KEY')
        self.endpoint = endpoint or cfg.get('BING_ENDPOINT')
        self.cache_dir = Path(cache_dir or cfg.get('BING_CACHE_DIR'))
        self.timeout = cfg.get('HTTP_TIMEOUT', 30)

    def cache_path(self, keyword: str) -> Path:
        return self.cache_dir / f"{quote(keyword.lower(), safe='')}.txt"

    def _read_cache(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable Bing cache file %s: %s", path, e)
            return None

    def _fetch(self, keyword: str, count: int) -> Dict[str, Any]:
        if not self.api_key:
            raise OperationError("Bing API key not configured")
        params = dict(DEFAULT_PARAMS, count=count, q=keyword.lower())
        try:
            response = requests.get(
                self.endpoint, params=params,
                headers={'Ocp-Apim-Subscription-Key': self.api_key},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise OperationError(f"Failed to fetch Bing data: {e}") from e
        if not response.ok:
            message = (data.get('error') or {}).get('message', f'HTTP {response.status_code}')
            logger.error("Bing API error: %s", message)
            raise OperationError(f"Bing API error: {message}")
        return data

    def search(self, keyword: str, count: int = 3) -> List[Dict[str, Any]]:
        """Organic web results for ``keyword`` (``webPages.value``)."""
        keyword = (keyword or '').strip()
        if not keyword:
            raise ValidationError("Missing search keyword")

        path = self.cache_path(keyword)
        data = self._read_cache(path)
        if data is None:
            data = self._fetch(keyword, count)
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                path.write_text(json.dumps(data), encoding='utf-8')
            except OSError as e:
                logger.warning("Could not write Bing cache %s: %s", path, e)
        return (data.get('webPages') or {}).get('value') or []
