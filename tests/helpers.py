"""Shared test models and helpers."""

from typing import Optional

from apiwrapper import Model, RelationBacking, has_many, has_one

ENTRYPOINT = "https://api.test/v1"


class Category(Model):
    name: Optional[str] = None
    active: Optional[bool] = None


class Author(Model):
    name: Optional[str] = None


class Comment(Model):
    body: Optional[str] = None
    article_id: Optional[int] = None


class Review(Model):
    score: Optional[int] = None


class Article(Model, with_soft_delete=True, with_timestamps=True):
    title: Optional[str] = None
    author_id: Optional[int] = None

    comments = has_many("Comment")
    author = has_one(Author, foreign_key="id", local_key="author_id")
    reviews = has_many("Review", backing=RelationBacking.REMOTE)

    @classmethod
    def scope_published(cls, query):
        return query.where("published", True)

    @classmethod
    def scope_by_author(cls, query, author_id):
        query.where("author_id", author_id)


def assert_attributes(instance, expected: dict):
    """Assert the attributes of a Model instance are exactly expected."""
    actual = instance.get_attributes()
    assert actual == expected, f"got {actual!r}, expected {expected!r}"
