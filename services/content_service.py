"""
Catalog content service: existence checks, per-item counters and serialization
of books and tutorials into API payloads.
"""
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete, case
from fastapi import HTTPException, status

from core.text_utils import slugify
from core.youtube import format_duration, get_thumbnail_url
from models.models import (
    Book, Tutorial, ContentTypeEnum, Rating, DownloadLog, ViewLog, Comment,
    Bookmark, ReadingHistory, Tag, ContentTag, User
)

CONTENT_MODELS = {
    ContentTypeEnum.book: Book,
    ContentTypeEnum.tutorial: Tutorial,
}


class ContentService:
    """Queries shared by the book, tutorial and interaction routers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_content(self, content_type: ContentTypeEnum, content_id: int):
        model = CONTENT_MODELS[content_type]
        result = await self.db.execute(select(model).where(model.id == content_id))
        return result.scalar_one_or_none()

    async def ensure_content_exists(self, content_type: ContentTypeEnum, content_id: int):
        content = await self.get_content(content_type, content_id)
        if content is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{content_type.value.title()} not found"
            )
        return content

    async def get_titles(self, refs: Iterable[Tuple[ContentTypeEnum, int]]) -> Dict[Tuple[ContentTypeEnum, int], str]:
        """Resolve titles for (content_type, content_id) pairs in one query per type."""
        titles = {}
        refs = list(refs)
        for content_type, model in CONTENT_MODELS.items():
            ids = {content_id for ref_type, content_id in refs if ref_type == content_type}
            if not ids:
                continue
            result = await self.db.execute(select(model.id, model.title).where(model.id.in_(ids)))
            titles.update({(content_type, row.id): row.title for row in result})
        return titles

    # --- Counters ---

    async def _count_by_content(self, model, content_type: ContentTypeEnum, ids: List[int], *criteria) -> Dict[int, int]:
        if not ids:
            return {}
        stmt = (
            select(model.content_id, func.count(model.id))
            .where(model.content_type == content_type, model.content_id.in_(ids), *criteria)
            .group_by(model.content_id)
        )
        result = await self.db.execute(stmt)
        return {content_id: count for content_id, count in result.all()}

    async def download_counts(self, content_type: ContentTypeEnum, ids: List[int]) -> Dict[int, int]:
        return await self._count_by_content(DownloadLog, content_type, ids)

    async def view_counts(self, content_type: ContentTypeEnum, ids: List[int]) -> Dict[int, int]:
        return await self._count_by_content(ViewLog, content_type, ids)

    async def comment_counts(self, content_type: ContentTypeEnum, ids: List[int]) -> Dict[int, int]:
        return await self._count_by_content(Comment, content_type, ids)

    async def vote_tallies(self, content_type: ContentTypeEnum, ids: List[int]) -> Dict[int, Tuple[int, int]]:
        """Map content id -> (up_votes, down_votes)."""
        if not ids:
            return {}
        stmt = (
            select(
                Rating.content_id,
                func.sum(case((Rating.vote == 1, 1), else_=0)),
                func.sum(case((Rating.vote == -1, 1), else_=0)),
            )
            .where(Rating.content_type == content_type, Rating.content_id.in_(ids))
            .group_by(Rating.content_id)
        )
        result = await self.db.execute(stmt)
        return {content_id: (int(up or 0), int(down or 0)) for content_id, up, down in result.all()}

    async def user_votes(self, user: Optional[User], content_type: ContentTypeEnum, ids: List[int]) -> Dict[int, int]:
        if user is None or not ids:
            return {}
        stmt = select(Rating.content_id, Rating.vote).where(
            Rating.user_id == user.id,
            Rating.content_type == content_type,
            Rating.content_id.in_(ids)
        )
        result = await self.db.execute(stmt)
        return {content_id: vote for content_id, vote in result.all()}

    async def tag_names(self, content_type: ContentTypeEnum, ids: List[int]) -> Dict[int, List[str]]:
        if not ids:
            return {}
        stmt = (
            select(ContentTag.content_id, Tag.name)
            .join(Tag, Tag.id == ContentTag.tag_id)
            .where(ContentTag.content_type == content_type, ContentTag.content_id.in_(ids))
            .order_by(Tag.name)
        )
        result = await self.db.execute(stmt)
        tags: Dict[int, List[str]] = {}
        for content_id, name in result.all():
            tags.setdefault(content_id, []).append(name)
        return tags

    async def _books_with_file_content(self, ids: List[int]) -> set:
        if not ids:
            return set()
        result = await self.db.execute(
            select(Book.id).where(Book.id.in_(ids), Book.file_content.is_not(None))
        )
        return set(result.scalars().all())

    # --- Tags ---

    async def set_content_tags(self, content_type: ContentTypeEnum, content_id: int, names: Iterable[str]) -> List[str]:
        """Replace the tag set of a content item, creating unknown tags on the fly."""
        wanted = {}
        for name in names:
            name = (name or "").strip()
            if name and slugify(name):
                wanted.setdefault(slugify(name), name)

        await self.db.execute(
            delete(ContentTag).where(
                ContentTag.content_type == content_type,
                ContentTag.content_id == content_id
            )
        )

        if wanted:
            result = await self.db.execute(select(Tag).where(Tag.slug.in_(wanted.keys())))
            existing = {tag.slug: tag for tag in result.scalars().all()}
            for slug, name in wanted.items():
                tag = existing.get(slug)
                if tag is None:
                    tag = Tag(name=name, slug=slug)
                    self.db.add(tag)
                    await self.db.flush()
                    existing[slug] = tag
                self.db.add(ContentTag(tag_id=tag.id, content_id=content_id, content_type=content_type))

        await self.db.flush()
        return sorted(tag.name for tag in existing.values()) if wanted else []

    # --- Lifecycle ---

    async def purge_content_references(self, content_type: ContentTypeEnum, content_id: int) -> None:
        """Remove polymorphic rows pointing at a content item that is being deleted."""
        for model in (Rating, Bookmark, ReadingHistory, ContentTag, ViewLog, DownloadLog):
            await self.db.execute(
                delete(model).where(model.content_type == content_type, model.content_id == content_id)
            )
        # Replies cascade from their parent through the foreign key
        await self.db.execute(
            delete(Comment).where(
                Comment.content_type == content_type,
                Comment.content_id == content_id,
                Comment.parent_comment_id.is_not(None)
            )
        )
        await self.db.execute(
            delete(Comment).where(Comment.content_type == content_type, Comment.content_id == content_id)
        )

    # --- Serialization ---

    async def serialize_books(self, books: List[Book], user: Optional[User] = None,
                              include_comment_count: bool = False) -> List[dict]:
        """
        Build API payloads for books, loading every counter in batched queries.

        The `category` relationship must already be loaded; blob columns are never
        included in the output.
        """
        ids = [book.id for book in books]
        downloads = await self.download_counts(ContentTypeEnum.book, ids)
        tallies = await self.vote_tallies(ContentTypeEnum.book, ids)
        votes = await self.user_votes(user, ContentTypeEnum.book, ids)
        tags = await self.tag_names(ContentTypeEnum.book, ids)
        with_content = await self._books_with_file_content(ids)
        comments = await self.comment_counts(ContentTypeEnum.book, ids) if include_comment_count else {}

        payloads = []
        for book in books:
            up_votes, down_votes = tallies.get(book.id, (0, 0))
            payloads.append({
                "id": book.id,
                "title": book.title,
                "author": book.author,
                "category_id": book.category_id,
                "category_name": book.category.name if book.category else None,
                "description": book.description,
                "isbn": book.isbn,
                "book_type": book.book_type,
                "file_path": book.file_path,
                "file_size": book.file_size,
                "file_type": book.file_type,
                "external_link": book.external_link,
                "purchase_link": book.purchase_link,
                "price": float(book.price) if book.price is not None else None,
                "currency": book.currency,
                "cover_image_path": book.cover_image_path,
                "published_year": book.published_year,
                "page_count": book.page_count,
                "has_file_content": book.id in with_content,
                "thumbnail": f"/api/books/{book.id}/thumbnail",
                "download_count": downloads.get(book.id, 0),
                "up_votes": up_votes,
                "down_votes": down_votes,
                "user_vote": votes.get(book.id),
                "comment_count": comments.get(book.id, 0) if include_comment_count else None,
                "tags": tags.get(book.id, []),
                "created_at": book.created_at,
                "updated_at": book.updated_at,
            })
        return payloads

    async def serialize_tutorials(self, tutorials: List[Tutorial], user: Optional[User] = None) -> List[dict]:
        ids = [tutorial.id for tutorial in tutorials]
        views = await self.view_counts(ContentTypeEnum.tutorial, ids)
        tallies = await self.vote_tallies(ContentTypeEnum.tutorial, ids)
        votes = await self.user_votes(user, ContentTypeEnum.tutorial, ids)
        tags = await self.tag_names(ContentTypeEnum.tutorial, ids)

        payloads = []
        for tutorial in tutorials:
            up_votes, down_votes = tallies.get(tutorial.id, (0, 0))
            payloads.append({
                "id": tutorial.id,
                "title": tutorial.title,
                "category_id": tutorial.category_id,
                "category_name": tutorial.category.name if tutorial.category else None,
                "description": tutorial.description,
                "creator": tutorial.creator,
                "difficulty": tutorial.difficulty,
                "content_type": tutorial.content_format,
                "content_url": tutorial.content_url,
                "embed_url": tutorial.embed_url,
                "video_id": tutorial.video_id,
                "file_path": tutorial.file_path,
                "duration_seconds": tutorial.duration_seconds,
                "duration": format_duration(tutorial.duration_seconds) if tutorial.duration_seconds else None,
                "thumbnail": get_thumbnail_url(tutorial.video_id) if tutorial.video_id else None,
                "view_count": views.get(tutorial.id, 0),
                "up_votes": up_votes,
                "down_votes": down_votes,
                "user_vote": votes.get(tutorial.id),
                "tags": tags.get(tutorial.id, []),
                "created_at": tutorial.created_at,
                "updated_at": tutorial.updated_at,
            })
        return payloads
