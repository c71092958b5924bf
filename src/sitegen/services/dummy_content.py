"""Canned generator output used outside production and as a last resort."""

from __future__ import annotations

from typing import Dict, List

from ..utils.slug_utils import sanitize_slug

DUMMY_IMAGE_URL = 'https://placehold.co/1024x1024.webp?text=Article'
DUMMY_LOGO_URL = 'https://placehold.co/600x200'

DUMMY_TITLES = [
    "Unlocking the Secrets of a Strong Immune System: Proven Strategies",
    "The Brain-Heart Connection: Understanding How Mental Health Influences Cardiovascular Wellness",
    "Mastering Sleep Hygiene: Practical Tips for Restorative Nights",
    "Gut Feeling: How Your Microbiome Influences Overall Health and How to Nourish It",
    "The Silent Epidemic: Tackling Chronic Inflammation Through Lifestyle Changes",
    "Customizing Nutrition: How to Adapt Your Diet to Your Body's Needs",
    "Movement as Medicine: The Surprising Health Benefits of Regular Physical Activity",
    "Demystifying Detoxification: What Works and What Doesn't in Cleansing Your Body",
    "Preventive Measures: How Regular Screening Can Save Your Life",
    "Mindfulness and Its Role in Physical Health: A Comprehensive Guide",
]

_DUMMY_ARTICLES = [
    {
        'title': DUMMY_TITLES[0],
        'metaDescription': (
            "Learn how to strengthen your immune system with proven strategies including diet, "
            "exercise, and stress management."
        ),
        'tags': ['Immune System', 'Health Tips'],
        'imagePrompt': "Immune-boosting foods arranged on a sunlit kitchen table",
        'content': (
            '<h2 id="introduction">Introduction</h2>'
            '<p>Your immune system is a network of cells, tissues and organs that defends the body '
            'against infection. Daily habits have a measurable effect on how well it works.</p>'
            '<h2 id="nutrition">Nutrition</h2>'
            '<ul><li><strong>Colourful vegetables:</strong> rich in vitamins A and C.</li>'
            '<li><strong>Fermented foods:</strong> support a diverse gut microbiome.</li></ul>'
            '<h2 id="sleep-and-stress">Sleep and Stress</h2>'
            '<p>Seven to nine hours of sleep and regular stress management keep inflammatory '
            'signalling in check.</p>'
            '<h2 id="conclusion">Conclusion</h2>'
            '<p>Small, consistent changes add up to a more resilient immune response.</p>'
        ),
    },
    {
        'title': DUMMY_TITLES[2],
        'metaDescription': (
            "Improve your sleep quality with practical tips on sleep hygiene, including optimizing "
            "your sleeping environment and habits."
        ),
        'tags': ['Sleep', 'Wellness'],
        'imagePrompt': "A calming bedroom at night with soft moonlight through linen curtains",
        'content': (
            '<h2 id="why-sleep-matters">Why Sleep Matters</h2>'
            '<p>Sleep is when the body repairs tissue and consolidates memory.</p>'
            '<h2 id="building-a-routine">Building a Routine</h2>'
            '<ul><li>Go to bed and wake up at the same time every day.</li>'
            '<li>Keep the bedroom cool, dark and quiet.</li>'
            '<li>Avoid screens for an hour before bed.</li></ul>'
            '<h2 id="conclusion">Conclusion</h2>'
            '<p>Good sleep hygiene is a habit, and habits are built one night at a time.</p>'
        ),
    },
    {
        'title': DUMMY_TITLES[9],
        'metaDescription': (
            "Discover the impact of mindfulness on physical health, including stress reduction, "
            "improved heart health, and better sleep."
        ),
        'tags': ['Mindfulness', 'Physical Health'],
        'imagePrompt': "A tranquil lakeside at dawn with mist over still water",
        'content': (
            '<h2 id="what-is-mindfulness">What Is Mindfulness?</h2>'
            '<p>Mindfulness is the practice of paying attention to the present moment without '
            'judgement.</p>'
            '<h2 id="benefits">Physical Benefits</h2>'
            '<ul><li>Lower resting heart rate and blood pressure.</li>'
            '<li>Reduced cortisol levels.</li></ul>'
            '<h2 id="conclusion">Conclusion</h2>'
            '<p>A few minutes of practice each day can benefit both mind and body.</p>'
        ),
    },
]


def get_dummy_titles(count: int) -> List[Dict]:
    """``count`` titles, cycling through the canned list."""
    return [{'id': i + 1, 'title': DUMMY_TITLES[i % len(DUMMY_TITLES)]} for i in range(max(count, 0))]


def get_dummy_articles(count: int) -> List[Dict]:
    articles = []
    for i in range(max(count, 0)):
        article = dict(_DUMMY_ARTICLES[i % len(_DUMMY_ARTICLES)])
        article['id'] = i + 1
        article['slug'] = sanitize_slug(article['title'])
        articles.append(article)
    return articles


def fallback_article(title: str, article_id=None) -> Dict:
    """Generic article returned when generation keeps failing for ``title``."""
    return {
        'id': article_id,
        'title': title,
        'slug': sanitize_slug(title),
        'metaDescription': (
            f"{title} - Comprehensive guide and insights. Learn more about this topic with "
            "expert analysis and practical tips."
        ),
        'tags': ['guide', 'insights'],
        'content': (
            f'<h2>About {title}</h2><p>This article provides comprehensive information about {title}. '
            'Our team has gathered the most relevant and up-to-date information to help you understand '
            'this topic better.</p><h3>Key Points</h3><ul><li>Detailed analysis of '
            f'{title}</li><li>Expert insights and recommendations</li><li>Practical applications and '
            f'examples</li></ul><h3>Conclusion</h3><p>Understanding {title} is essential for making '
            'informed decisions. This guide provides the foundation you need to explore this topic further.</p>'
        ),
        'imagePrompt': f"Professional illustration representing {title}, clean design, modern style",
        'featuredImage': '',
    }
