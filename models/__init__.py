from .models import (
    User, UserSession, Category, Book, Tutorial, BookTutorialRecommendation,
    Tag, ContentTag, Course, TestResult, Certificate,
    Rating, Bookmark, ReadingHistory, Comment,
    DownloadLog, ViewLog, SearchHistory, UserActivityLog,
    UserRoleEnum, ContentTypeEnum, BookTypeEnum, DifficultyEnum, TutorialFormatEnum
)
