"""
Database models for the library.
"""
import enum
from sqlalchemy import (
    Column, Integer, BigInteger, SmallInteger, String, DateTime, Boolean, Text,
    Numeric, LargeBinary, ForeignKey, Enum as SAEnum,
    UniqueConstraint, PrimaryKeyConstraint, Index, CheckConstraint
)
from sqlalchemy.dialects.mysql import LONGBLOB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, expression
from db_config import Base
from core.text_utils import utcnow

# Binary payloads (book files, thumbnails) need LONGBLOB on MySQL
BinaryContent = LargeBinary().with_variant(LONGBLOB(), "mysql")


# --- ENUM Types ---
class UserRoleEnum(enum.Enum):
    user = "user"
    moderator = "moderator"
    admin = "admin"

class ContentTypeEnum(enum.Enum):
    book = "book"
    tutorial = "tutorial"

class BookTypeEnum(enum.Enum):
    file = "file"
    link = "link"
    purchase = "purchase"

class DifficultyEnum(enum.Enum):
    Beginner = "Beginner"
    Intermediate = "Intermediate"
    Advanced = "Advanced"

class TutorialFormatEnum(enum.Enum):
    Video = "Video"
    PDF = "PDF"


def _content_type_column():
    return Column(SAEnum(ContentTypeEnum, name="content_type_enum"), nullable=False)


# --- Users and sessions ---
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    profile_image = Column(String(500), nullable=True)
    role = Column(SAEnum(UserRoleEnum, name="user_role_enum"), nullable=False,
                  default=UserRoleEnum.user, server_default=UserRoleEnum.user.value)
    is_active = Column(Boolean, nullable=False, default=True, server_default=expression.true())

    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())
    last_login = Column(DateTime, nullable=True)

    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    ratings = relationship("Rating", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    bookmarks = relationship("Bookmark", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    reading_history = relationship("ReadingHistory", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    comments = relationship("Comment", back_populates="author", cascade="all, delete-orphan", passive_deletes=True)
    downloads = relationship("DownloadLog", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    test_results = relationship("TestResult", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    certificates = relationship("Certificate", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username

class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_token = Column(String(512), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())
    expires_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")


# --- Catalog ---
class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    books = relationship("Book", back_populates="category", passive_deletes="all")
    tutorials = relationship("Tutorial", back_populates="category", passive_deletes="all")

class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_type", "book_type"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    isbn = Column(String(20), nullable=True)
    book_type = Column(SAEnum(BookTypeEnum, name="book_type_enum"), nullable=False,
                       default=BookTypeEnum.file, server_default=BookTypeEnum.file.value)
    file_path = Column(String(255), nullable=True)
    file_content = Column(BinaryContent, nullable=True)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(100), nullable=True)
    external_link = Column(String(500), nullable=True)
    purchase_link = Column(String(500), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=True, default="USD", server_default="USD")
    cover_image_path = Column(String(500), nullable=True)
    thumbnail_content = Column(BinaryContent, nullable=True)
    thumbnail_mime = Column(String(100), nullable=True)
    published_year = Column(SmallInteger, nullable=True)
    page_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    category = relationship("Category", back_populates="books")
    recommended_tutorials = relationship(
        "Tutorial", secondary="book_tutorial_recommendations", back_populates="recommended_for_books"
    )

class Tutorial(Base):
    __tablename__ = "tutorials"
    __table_args__ = (
        Index("idx_tutorial_title", "title"),
        Index("idx_tutorial_creator", "creator"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    creator = Column(String(255), nullable=True)
    difficulty = Column(SAEnum(DifficultyEnum, name="difficulty_enum"), nullable=False,
                        default=DifficultyEnum.Beginner, server_default=DifficultyEnum.Beginner.value)
    # Stored as `content_type` (Video/PDF), unrelated to the polymorphic ContentTypeEnum
    content_format = Column("content_type", SAEnum(TutorialFormatEnum, name="tutorial_format_enum"), nullable=False,
                            default=TutorialFormatEnum.Video, server_default=TutorialFormatEnum.Video.value)
    content_url = Column(String(500), nullable=True)
    embed_url = Column(String(1000), nullable=True)
    video_id = Column(String(20), nullable=True)
    file_path = Column(String(255), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    category = relationship("Category", back_populates="tutorials")
    recommended_for_books = relationship(
        "Book", secondary="book_tutorial_recommendations", back_populates="recommended_tutorials"
    )

class BookTutorialRecommendation(Base):
    __tablename__ = "book_tutorial_recommendations"
    __table_args__ = (PrimaryKeyConstraint("book_id", "tutorial_id"),)

    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    tutorial_id = Column(Integer, ForeignKey("tutorials.id", ondelete="CASCADE"), nullable=False)

class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)
    slug = Column(String(60), nullable=False, unique=True)

    content_links = relationship("ContentTag", back_populates="tag", cascade="all, delete-orphan", passive_deletes=True)

class ContentTag(Base):
    __tablename__ = "content_tags"
    __table_args__ = (
        PrimaryKeyConstraint("tag_id", "content_id", "content_type"),
        Index("idx_content_tags_content", "content_id", "content_type"),
    )

    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()

    tag = relationship("Tag", back_populates="content_links")


# --- Courses, tests and certificates ---
class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    associated_book_id = Column(Integer, ForeignKey("books.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    associated_book = relationship("Book")
    test_results = relationship("TestResult", back_populates="course", cascade="all, delete-orphan", passive_deletes=True)
    certificates = relationship("Certificate", back_populates="course", cascade="all, delete-orphan", passive_deletes=True)

class TestResult(Base):
    __tablename__ = "test_results"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_user_course_test"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    score = Column(Numeric(5, 2), nullable=False)
    external_test_id = Column(String(255), nullable=True)
    test_taken_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="test_results")
    course = relationship("Course", back_populates="test_results")

class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    validation_code = Column(String(100), nullable=False, unique=True)
    issued_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="certificates")
    course = relationship("Course", back_populates="certificates")


# --- User engagement (polymorphic over books and tutorials) ---
class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "content_id", "content_type", name="uq_user_content_rating"),
        Index("idx_ratings_content", "content_id", "content_type"),
        CheckConstraint("vote IN (1, -1)", name="ck_ratings_vote"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()
    vote = Column(SmallInteger, nullable=False)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    user = relationship("User", back_populates="ratings")

class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "content_id", "content_type", name="uq_user_content_bookmark"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="bookmarks")

class ReadingHistory(Base):
    __tablename__ = "reading_history"
    __table_args__ = (UniqueConstraint("user_id", "content_id", "content_type", name="uq_user_content_history"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()
    progress = Column(String(50), nullable=True)  # e.g. "page 50" or "25:30"
    last_accessed_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="reading_history")

class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (Index("idx_comments_content", "content_id", "content_type"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()
    parent_comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    comment_text = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    author = relationship("User", back_populates="comments")


# --- Analytics and logging (append-only) ---
class DownloadLog(Base):
    __tablename__ = "download_logs"
    __table_args__ = (Index("idx_download_logs_content", "content_id", "content_type"),)

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()
    downloaded_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    ip_address = Column(String(45), nullable=True)

    user = relationship("User", back_populates="downloads")

class ViewLog(Base):
    __tablename__ = "view_logs"
    __table_args__ = (Index("idx_view_logs_content", "content_id", "content_type"),)

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content_id = Column(Integer, nullable=False)
    content_type = _content_type_column()
    viewed_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    ip_address = Column(String(45), nullable=True)

class SearchHistory(Base):
    __tablename__ = "search_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    search_query = Column(String(255), nullable=False)
    results_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

class UserActivityLog(Base):
    __tablename__ = "user_activity_logs"
    __table_args__ = (Index("idx_activity_logs_action", "action_type"),)

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_type = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User")
