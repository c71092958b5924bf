"""AI Content Service
=====================

Article titles, article bodies and safe image prompts from OpenAI chat
models. Every completion is wrapped in :func:`with_timeout_and_retry`.
Outside production the canned content from :mod:`dummy_content` is returned
instead, so local development never spends API credit.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

from flask import current_app
from openai import OpenAI

from ..utils.retry import with_timeout_and_retry
from ..utils.slug_utils import sanitize_slug
from .dummy_content import fallback_article, get_dummy_articles, get_dummy_titles
from .service_base import OperationError, ValidationError

logger = logging.getLogger(__name__)

TITLE_MODEL = 'gpt-4-turbo'
ARTICLE_MODEL = 'gpt-4-turbo'
SINGLE_ARTICLE_MODEL = 'gpt-4o'
PROMPT_MODEL = 'gpt-4o-mini'
MAX_TITLE_ATTEMPTS = 3
MAX_TITLES = 50

SAFE_PROMPT_SYSTEM = (
    "You are a creative visual designer. Generate a vivid, family-friendly, content-policy-compliant "
    "image prompt for an AI image generator.\nIt should NOT contain people, faces, brands, violence, "
    "politics, drugs, or any controversial topics. Focus on abstract, nature, objects, or concept art."
)


def _parse_json_list(content: Optional[str], key: str) -> List[Any]:
    """Accept either a bare JSON array or ``{key: [...]}``."""
    if not content:
        raise OperationError("OpenAI returned empty content")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise OperationError(f"Failed to parse OpenAI response: {e}") from e
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get(key), list):
        return parsed[key]
    raise OperationError("Unexpected response format from OpenAI")


class AIContentService:
    def __init__(self, client: Optional[OpenAI] = None, is_production: Optional[bool] = None):
        cfg = current_app.config
        self.is_production = cfg.get('IS_PRODUCTION', False) if is_production is None else is_production
        self.timeout = cfg.get('OPENAI_TIMEOUT', 30.0)
        self._api_key = cfg.get('OPENAI_API_KEY')
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise OperationError("OpenAI API key not configured")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def _complete(self, **kwargs) -> Optional[str]:
        completion = with_timeout_and_retry(
            lambda: self.client.chat.completions.create(**kwargs),
            retries=2,
            timeout=self.timeout,
        )
        return completion.choices[0].message.content

    # ------------------------------------------------------------------
    # Titles
    # ------------------------------------------------------------------

    def _fetch_titles(self, count: int, niche: str, content_style: str, tone: str, language: str) -> List[str]:
        prompt = (
            f"You must generate exactly {count} unique, catchy article titles for a {niche} website.\n\n"
            f"Requirements:\n- Style: {content_style}\n- Tone: {tone}\n- Language: {language}\n"
            '- Format: Respond ONLY with a JSON object in the following format: {"titles": ["Title 1", ...]}\n'
            f'Ensure the "titles" array contains exactly {count} items.'
        )
        content = self._complete(
            model=TITLE_MODEL,
            messages=[
                {'role': 'system', 'content': 'You are a professional content writer. Generate engaging article titles.'},
                {'role': 'user', 'content': prompt},
            ],
            temperature=0.7,
            max_tokens=3500,
            response_format={'type': 'json_object'},
        )
        return [str(t).strip() for t in _parse_json_list(content, 'titles') if str(t).strip()]

    def generate_titles(self, niche: str, count: int, content_style: str = '', tone: str = '',
                        language: str = 'English') -> List[Dict[str, Any]]:
        """Collect ``count`` unique titles in up to three rounds, padding with canned ones."""
        if count < 1 or count > MAX_TITLES:
            raise ValidationError(f"count must be between 1 and {MAX_TITLES}")
        if not self.is_production:
            return get_dummy_titles(count)

        titles: List[str] = []
        try:
            attempts = 0
            while len(titles) < count and attempts < MAX_TITLE_ATTEMPTS:
                needed = count - len(titles)
                for title in self._fetch_titles(needed, niche, content_style, tone, language):
                    if title not in titles:
                        titles.append(title)
                attempts += 1
        except Exception as e:
            logger.error("Title generation failed, using canned titles: %s", e)
            return get_dummy_titles(count)

        if len(titles) < count:
            titles.extend(t['title'] for t in get_dummy_titles(count - len(titles)))
        return [{'id': i + 1, 'title': title} for i, title in enumerate(titles[:count])]

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def generate_articles(self, titles: List[str], niche: str = '', tone: str = '', content_style: str = '',
                          language: str = 'English') -> List[Dict[str, Any]]:
        if not titles:
            raise ValidationError("titles are required")
        if not self.is_production:
            articles = get_dummy_articles(len(titles))
            for article, title in zip(articles, titles):
                article.update(title=title, slug=sanitize_slug(title), metaTitle=title,
                               metaKeywords=', '.join(article['tags']))
            return articles

        numbered = '\n'.join(f"{i + 1}. {title}" for i, title in enumerate(titles))
        prompt = (
            "For each of the following article titles, generate an engaging, well-structured article "
            "with metadata and image details.\n\n"
            f"1. Content: 1500 to 2500 words of HTML, style {content_style}, tone {tone}, language {language}, "
            f"for a {niche} website, with H2/H3 headings.\n"
            "2. metaTitle: under 60 characters.\n"
            "3. metaDescription: approx. 150-160 characters.\n"
            "4. metaKeywords: comma separated keywords.\n"
            "5. tags: array of 1-2 relevant tags.\n"
            "6. imagePrompt: a safe, family-friendly scene without people, brands or sensitive topics.\n\n"
            f"Titles:\n{numbered}\n\n"
            'Respond in strict JSON: {"articles": [{"title": "", "slug": "", "content": "", "metaTitle": "", '
            '"metaDescription": "", "metaKeywords": "", "tags": [], "imagePrompt": ""}]}'
        )
        content = self._complete(
            model=ARTICLE_MODEL,
            messages=[
                {'role': 'system', 'content': 'You are a professional content writer. Generate engaging article content.'},
                {'role': 'user', 'content': prompt},
            ],
            response_format={'type': 'json_object'},
        )
        raw = _parse_json_list(content, 'articles')
        articles = []
        for index, item in enumerate(raw):
            title = item.get('title') or (titles[index] if index < len(titles) else '')
            articles.append({
                'id': index + 1,
                'title': title,
                'slug': sanitize_slug(item.get('slug') or title),
                'content': item.get('content', ''),
                'metaTitle': item.get('metaTitle') or title,
                'metaDescription': item.get('metaDescription', ''),
                'metaKeywords': item.get('metaKeywords', ''),
                'tags': item.get('tags') or [],
                'imagePrompt': item.get('imagePrompt', ''),
            })
        return articles

    def generate_single_article(self, title: str, tone: str = '', content_style: str = '',
                                language: str = 'English', article_id=None) -> Dict[str, Any]:
        """One article for ``title``; falls back to a generic article if OpenAI keeps failing."""
        if not title:
            raise ValidationError("title is required")
        if not self.is_production:
            dummy = get_dummy_articles(1)[0]
            dummy.update(id=article_id, title=title, slug=sanitize_slug(title))
            return {'article': dummy, 'durationMs': 500}

        system_prompt = (
            f"You are a professional content writer and SEO strategist for {language}.\n"
            "Generate a JSON response for the following article title with:\n"
            "- metaDescription (150-160 characters, optimized for click-through)\n"
            "- tags: 1-2 relevant keywords\n"
            f"- content: An HTML text of 1000-2500 words in {tone} tone and {content_style} style\n"
            "- imagePrompt: vivid scene for a high-quality featured image\n"
            'Respond only in this exact JSON format: {"article": {"metaDescription": "", "tags": [], '
            '"content": "", "imagePrompt": ""}}\n'
            f"Title: {title}"
        )
        started = time.monotonic()
        try:
            content = self._complete(
                model=SINGLE_ARTICLE_MODEL,
                messages=[{'role': 'system', 'content': system_prompt}],
                response_format={'type': 'json_object'},
                temperature=0.7,
                max_tokens=3500,
            )
            parsed = json.loads(content or '')
            if not isinstance(parsed, dict) or not isinstance(parsed.get('article'), dict):
                raise OperationError("Missing 'article' key in response")
        except Exception as e:
            logger.warning("Article generation for '%s' failed, using fallback: %s", title, e)
            return {'article': fallback_article(title, article_id), 'durationMs': 0, 'fallback': True}

        article = dict(parsed['article'])
        article.update(id=article_id, title=title, slug=sanitize_slug(title))
        return {'article': article, 'durationMs': int((time.monotonic() - started) * 1000)}

    # ------------------------------------------------------------------
    # Image prompts
    # ------------------------------------------------------------------

    def generate_safe_prompt(self, title: str) -> str:
        content = self._complete(
            model=PROMPT_MODEL,
            messages=[
                {'role': 'system', 'content': SAFE_PROMPT_SYSTEM},
                {'role': 'user', 'content': f'Create a safe image prompt for the article title: "{title}"'},
            ],
            temperature=0.7,
        )
        prompt = (content or '').strip()
        if not prompt:
            raise OperationError("No prompt returned from OpenAI")
        return prompt
