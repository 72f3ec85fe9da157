"""
Courses linked to books, external test results and completion certificates.
"""
import secrets
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select, delete

from db_config import get_async_db
from core.security import get_current_active_user, get_current_admin_user
from core.logging import get_logger
from core.text_utils import utcnow
from models.models import User, Book, Course, TestResult, Certificate
from schemas.course import (
    CourseCreate, CourseUpdate, CourseRead, TestResultSubmit, TestResultRead,
    CertificateIssue, CertificateRead, CertificateListResponse, CertificateValidation
)
from schemas.user import MessageResponse

router = APIRouter(prefix="/api", tags=["Courses"])

logger = get_logger("courses")


def generate_validation_code() -> str:
    """Public certificate code, e.g. IYKE-3F9A1C0B7D2E."""
    return f"IYKE-{secrets.token_hex(6).upper()}"


def _course_to_read(course: Course) -> CourseRead:
    return CourseRead.model_validate(course).model_copy(update={
        "associated_book_title": course.associated_book.title if course.associated_book else None
    })


def _result_to_read(result: TestResult) -> TestResultRead:
    return TestResultRead(
        id=result.id,
        user_id=result.user_id,
        course_id=result.course_id,
        course_name=result.course.name if result.course else None,
        score=float(result.score),
        external_test_id=result.external_test_id,
        test_taken_at=result.test_taken_at,
    )


def _certificate_to_read(certificate: Certificate) -> CertificateRead:
    return CertificateRead(
        id=certificate.id,
        user_id=certificate.user_id,
        username=certificate.user.username if certificate.user else None,
        course_id=certificate.course_id,
        course_name=certificate.course.name if certificate.course else None,
        validation_code=certificate.validation_code,
        issued_at=certificate.issued_at,
    )


def _certificate_query():
    return select(Certificate).options(selectinload(Certificate.user), selectinload(Certificate.course))


async def _load_course(db: AsyncSession, course_id: int) -> Course:
    result = await db.execute(
        select(Course)
        .options(selectinload(Course.associated_book).defer(Book.file_content).defer(Book.thumbnail_content))
        .where(Course.id == course_id)
        .execution_options(populate_existing=True)
    )
    course = result.scalar_one_or_none()
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return course


async def _ensure_book(db: AsyncSession, book_id) -> None:
    if book_id is not None and (await db.execute(select(Book.id).where(Book.id == book_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Book not found")


async def _ensure_user_and_course(db: AsyncSession, user_id: int, course_id: int) -> None:
    if (await db.execute(select(User.id).where(User.id == user_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if (await db.execute(select(Course.id).where(Course.id == course_id))).first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")


# ============ Courses ============

@router.get("/courses", response_model=List[CourseRead])
async def list_courses(db: AsyncSession = Depends(get_async_db)):
    result = await db.execute(
        select(Course)
        .options(selectinload(Course.associated_book).defer(Book.file_content).defer(Book.thumbnail_content))
        .order_by(Course.name)
    )
    return [_course_to_read(course) for course in result.scalars().all()]


@router.post("/admin/courses", response_model=CourseRead, status_code=status.HTTP_201_CREATED)
async def create_course(
    course_data: CourseCreate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    await _ensure_book(db, course_data.associated_book_id)

    course = Course(
        name=course_data.name.strip(),
        description=course_data.description,
        associated_book_id=course_data.associated_book_id,
    )
    db.add(course)
    await db.commit()

    return _course_to_read(await _load_course(db, course.id))


@router.put("/admin/courses/{course_id}", response_model=CourseRead)
async def update_course(
    course_id: int,
    course_update: CourseUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    update_data = course_update.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    if "name" in update_data and not update_data["name"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name cannot be empty")

    course = await _load_course(db, course_id)
    if "associated_book_id" in update_data:
        await _ensure_book(db, update_data["associated_book_id"])

    for field, value in update_data.items():
        setattr(course, field, value)
    await db.commit()

    return _course_to_read(await _load_course(db, course_id))


@router.delete("/admin/courses/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Delete a course together with its test results and certificates."""
    await _load_course(db, course_id)
    await db.execute(delete(Course).where(Course.id == course_id))
    await db.commit()
    return MessageResponse(message="Course deleted successfully")


# ============ Test results ============

@router.post("/admin/test-results", response_model=TestResultRead)
async def record_test_result(
    result_data: TestResultSubmit,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Record a user's score for a course; a later result replaces the earlier one."""
    await _ensure_user_and_course(db, result_data.user_id, result_data.course_id)

    result = await db.execute(select(TestResult).where(
        TestResult.user_id == result_data.user_id,
        TestResult.course_id == result_data.course_id
    ))
    test_result = result.scalar_one_or_none()
    if test_result is None:
        test_result = TestResult(user_id=result_data.user_id, course_id=result_data.course_id)
        db.add(test_result)

    test_result.score = result_data.score
    test_result.external_test_id = result_data.external_test_id
    test_result.test_taken_at = utcnow()
    await db.commit()

    reloaded = await db.execute(
        select(TestResult)
        .options(selectinload(TestResult.course))
        .where(TestResult.id == test_result.id)
        .execution_options(populate_existing=True)
    )
    return _result_to_read(reloaded.scalar_one())


@router.get("/test-results", response_model=List[TestResultRead])
async def list_my_test_results(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(
        select(TestResult)
        .options(selectinload(TestResult.course))
        .where(TestResult.user_id == current_user.id)
        .order_by(TestResult.test_taken_at.desc())
    )
    return [_result_to_read(test_result) for test_result in result.scalars().all()]


# ============ Certificates ============

@router.get("/certificates", response_model=CertificateListResponse)
async def list_my_certificates(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(
        _certificate_query().where(Certificate.user_id == current_user.id).order_by(Certificate.issued_at.desc())
    )
    return CertificateListResponse(certificates=[_certificate_to_read(c) for c in result.scalars().all()])


@router.get("/certificates/validate/{validation_code}", response_model=CertificateValidation)
async def validate_certificate(validation_code: str, db: AsyncSession = Depends(get_async_db)):
    """Public check of a certificate code."""
    result = await db.execute(_certificate_query().where(Certificate.validation_code == validation_code))
    certificate = result.scalar_one_or_none()
    if certificate is None:
        return CertificateValidation(valid=False)
    return CertificateValidation(valid=True, certificate=_certificate_to_read(certificate))


@router.get("/admin/certificates", response_model=CertificateListResponse)
async def list_certificates(
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(_certificate_query().order_by(Certificate.issued_at.desc(), Certificate.id.desc()))
    return CertificateListResponse(certificates=[_certificate_to_read(c) for c in result.scalars().all()])


@router.post("/admin/certificates", response_model=CertificateRead, status_code=status.HTTP_201_CREATED)
async def issue_certificate(
    issue_data: CertificateIssue,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    await _ensure_user_and_course(db, issue_data.user_id, issue_data.course_id)

    validation_code = generate_validation_code()
    while (await db.execute(select(Certificate.id).where(Certificate.validation_code == validation_code))).first():
        validation_code = generate_validation_code()

    certificate = Certificate(
        user_id=issue_data.user_id,
        course_id=issue_data.course_id,
        validation_code=validation_code,
    )
    db.add(certificate)
    await db.commit()

    logger.info("Certificate issued", certificate_id=certificate.id, user_id=issue_data.user_id,
                course_id=issue_data.course_id, admin_id=current_user.id)

    result = await db.execute(
        _certificate_query().where(Certificate.id == certificate.id).execution_options(populate_existing=True)
    )
    return _certificate_to_read(result.scalar_one())


@router.delete("/admin/certificates/{certificate_id}", response_model=MessageResponse)
async def revoke_certificate(
    certificate_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_async_db)
):
    result = await db.execute(delete(Certificate).where(Certificate.id == certificate_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Certificate not found")
    await db.commit()
    return MessageResponse(message="Certificate revoked")
