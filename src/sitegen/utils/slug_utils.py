"""Slug Normalization Utilities
==============================

Centralizes slug handling for articles and tags so that the admin API and
the public renderer agree on URL shapes.

CONVENTION: slugs are lowercase ASCII words joined by single hyphens
(e.g. "10-tips-for-better-sleep"). Anything outside ``[a-z0-9\\s-]`` is
dropped rather than transliterated.
"""

import re
from typing import Callable, Optional

_DISALLOWED = re.compile(r'[^a-z0-9\s-]')
_WHITESPACE = re.compile(r'\s+')
_HYPHENS = re.compile(r'-+')

DEFAULT_SLUG = 'article'


def sanitize_slug(text: str) -> str:
    """Normalize arbitrary text to a URL slug.

    Examples:
        >>> sanitize_slug("  10 Tips: Better Sleep!  ")
        '10-tips-better-sleep'
        >>> sanitize_slug("Already--a---slug")
        'already-a-slug'
        >>> sanitize_slug("Café & Crème")
        'caf-crme'
    """
    if not text or not isinstance(text, str):
        return ""

    slug = text.lower().strip()
    slug = _DISALLOWED.sub('', slug)
    slug = _WHITESPACE.sub('-', slug)
    slug = _HYPHENS.sub('-', slug)
    return slug.strip('-')


def next_available_slug(base: str, is_taken: Callable[[str], bool], max_length: Optional[int] = None) -> str:
    """Return ``base`` or the first ``base-N`` (N >= 2) for which ``is_taken`` is False.

    Examples:
        >>> taken = {'hello', 'hello-2'}
        >>> next_available_slug('hello', taken.__contains__)
        'hello-3'
    """
    base = base or DEFAULT_SLUG
    if max_length:
        base = base[:max_length].rstrip('-') or DEFAULT_SLUG

    candidate = base
    counter = 2
    while is_taken(candidate):
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


def tag_display_name(name: str) -> str:
    """Capitalize a tag for display.

    Examples:
        >>> tag_display_name("mental HEALTH")
        'Mental health'
    """
    name = (name or '').strip()
    if not name:
        return ''
    return name[0].upper() + name[1:].lower()


def slug_to_title(slug: str) -> str:
    """Reverse a slug into a readable heading.

    Examples:
        >>> slug_to_title("healthy-eating")
        'Healthy eating'
    """
    return tag_display_name((slug or '').replace('-', ' '))
