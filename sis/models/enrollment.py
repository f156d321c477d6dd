# sis/models/enrollment.py
import enum

from sqlalchemy import Column, String, DateTime, Uuid, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from .base import Base, enum_column


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "active"
    DROPPED = "dropped"
    COMPLETED = "completed"


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        # One active enrollment per (student, course)
        Index(
            "uq_enrollments_active_student_course",
            "student_id",
            "course_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    # Foreign Keys
    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    course_id = Column(Uuid(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)

    # Enrollment Details
    enrollment_date = Column(DateTime, nullable=False)
    status = Column(enum_column(EnrollmentStatus, 20), default=EnrollmentStatus.ACTIVE, nullable=False)
    grade = Column(String(2))
    dropped_at = Column(DateTime)
    completed_at = Column(DateTime)

    # Relationships
    course = relationship("Course", back_populates="enrollments")
