# sis/models/course.py
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Numeric, Text, Time, Uuid, ForeignKey
from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_courses_capacity_non_negative"),
        CheckConstraint(
            "enrolled_count >= 0 AND enrolled_count <= capacity",
            name="ck_courses_enrolled_within_capacity",
        ),
    )

    code = Column(String(20), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    credits = Column(Integer, nullable=False, default=3)
    semester = Column(String(20), nullable=False, index=True)

    # Capacity; enrolled_count is written only by register/drop
    capacity = Column(Integer, nullable=False, default=30)
    enrolled_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Registration window
    registration_start = Column(DateTime)
    registration_end = Column(DateTime)
    tuition_per_credit = Column(Numeric(10, 2), nullable=False, default=0)

    # Meeting schedule, e.g. meeting_days="MW"
    location = Column(String(100))
    meeting_days = Column(String(7))
    start_time = Column(Time)
    end_time = Column(Time)

    # Relationships
    prerequisites = relationship(
        "CoursePrerequisite",
        foreign_keys="CoursePrerequisite.course_id",
        back_populates="course",
        cascade="all, delete-orphan",
    )
    waitlist = relationship(
        "CourseWaitlist",
        back_populates="course",
        order_by="CourseWaitlist.position",
        cascade="all, delete-orphan",
    )
    enrollments = relationship("Enrollment", back_populates="course")

    def is_full(self) -> bool:
        return self.enrolled_count >= self.capacity

    def is_registration_open(self, now) -> bool:
        if not self.is_active or self.registration_start is None or self.registration_end is None:
            return False
        return self.registration_start <= now <= self.registration_end

    def meeting_day_set(self) -> set:
        return set((self.meeting_days or "").replace(" ", "").upper())

    def has_schedule(self) -> bool:
        return bool(self.meeting_days) and self.start_time is not None and self.end_time is not None


class CoursePrerequisite(Base):
    __tablename__ = "course_prerequisites"
    __table_args__ = (
        UniqueConstraint("course_id", "prerequisite_id", name="uq_course_prerequisite"),
    )

    course_id = Column(Uuid(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    prerequisite_id = Column(Uuid(as_uuid=True), ForeignKey("courses.id"), nullable=False)
    min_grade = Column(String(2), nullable=False, default="D-")

    course = relationship("Course", foreign_keys=[course_id], back_populates="prerequisites")
    prerequisite = relationship("Course", foreign_keys=[prerequisite_id])


class CourseWaitlist(Base):
    __tablename__ = "course_waitlists"
    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_waitlist_course_student"),
        # Not unique: compaction decrements positions row by row
        Index("ix_waitlist_course_position", "course_id", "position"),
    )

    course_id = Column(Uuid(as_uuid=True), ForeignKey("courses.id"), nullable=False)
    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    joined_at = Column(DateTime, nullable=False)

    course = relationship("Course", back_populates="waitlist")
