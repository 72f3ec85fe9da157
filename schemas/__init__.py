# Schemas package for Pydantic models
from .user import UserRead, ProfileUpdate, AdminUserCreate, AdminUserUpdate
from .auth import Token, SignupRequest, SigninRequest, SigninResponse
from .category import CategoryCreate, CategoryUpdate, CategoryWithStats
from .book import BookCreate, BookUpdate, BookRead, BookListResponse
from .tutorial import TutorialCreate, TutorialUpdate, TutorialRead, TutorialListResponse
from .rating import VoteRequest, VoteResponse, VoteTally
from .comment import CommentCreate, CommentUpdate, CommentRead
