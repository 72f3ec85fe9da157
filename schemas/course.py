"""
Pydantic schemas for courses, test results and certificates.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    associated_book_id: Optional[int] = None


class CourseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    associated_book_id: Optional[int] = None


class CourseRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    associated_book_id: Optional[int] = None
    associated_book_title: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TestResultSubmit(BaseModel):
    user_id: int
    course_id: int
    score: float = Field(..., ge=0, le=100)
    external_test_id: Optional[str] = Field(None, max_length=255)


class TestResultRead(BaseModel):
    id: int
    user_id: int
    course_id: int
    course_name: Optional[str] = None
    score: float
    external_test_id: Optional[str] = None
    test_taken_at: datetime


class CertificateIssue(BaseModel):
    user_id: int
    course_id: int


class CertificateRead(BaseModel):
    id: int
    user_id: int
    username: Optional[str] = None
    course_id: int
    course_name: Optional[str] = None
    validation_code: str
    issued_at: datetime


class CertificateListResponse(BaseModel):
    certificates: List[CertificateRead]


class CertificateValidation(BaseModel):
    valid: bool
    certificate: Optional[CertificateRead] = None
