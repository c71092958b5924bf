from __future__ import annotations

from ..extensions import db
from ..utils.time import utc_now
from .user import new_uuid, _isoformat


class Article(db.Model):
    """A generated or hand-edited post; slugs are unique within one site."""

    __tablename__ = 'articles'
    __table_args__ = (db.UniqueConstraint('site_id', 'slug', name='uq_article_site_slug'),)

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    site_id = db.Column(db.String(36), db.ForeignKey('sites.id'), nullable=False, index=True)
    title = db.Column(db.String(500), nullable=False)
    slug = db.Column(db.String(255), nullable=False, index=True)
    content = db.Column(db.Text)
    image_url = db.Column(db.String(1024))
    meta_title = db.Column(db.String(500))
    meta_description = db.Column(db.Text)
    meta_keywords = db.Column(db.Text)
    author = db.Column(db.String(120))
    published = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utc_now, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    article_tags = db.relationship('ArticleTag', backref='article', lazy='select', cascade='all, delete-orphan')

    @property
    def tags(self) -> list:
        return [at.tag for at in self.article_tags if at.tag is not None]

    def __repr__(self) -> str:
        return f'<Article {self.slug}>'

    def to_dict(self, include_content: bool = True) -> dict:
        data = {
            'id': self.id,
            'site_id': self.site_id,
            'title': self.title,
            'slug': self.slug,
            'image_url': self.image_url,
            'meta_title': self.meta_title,
            'meta_description': self.meta_description,
            'meta_keywords': self.meta_keywords,
            'author': self.author,
            'published': self.published,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
            'tags': [t.to_dict() for t in self.tags],
        }
        if include_content:
            data['content'] = self.content
        return data


class Tag(db.Model):
    """Tags are global and shared between sites, keyed by slug."""

    __tablename__ = 'tags'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'slug': self.slug}


class ArticleTag(db.Model):
    __tablename__ = 'article_tags'
    __table_args__ = (db.UniqueConstraint('article_id', 'tag_id', name='uq_article_tag'),)

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    article_id = db.Column(db.String(36), db.ForeignKey('articles.id'), nullable=False, index=True)
    tag_id = db.Column(db.String(36), db.ForeignKey('tags.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    tag = db.relationship('Tag')
