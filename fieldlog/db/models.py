# fieldlog/db/models.py
from sqlalchemy import (
    Column, Integer, String, ForeignKey, Date, DateTime, Text, Float, Boolean,
    CheckConstraint, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()

class User(Base):
    """Login account. An account may exist before its engineer profile does."""
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    full_name = Column(String(100))
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    engineer = relationship("Engineer", back_populates="user", uselist=False)

class Engineer(Base):
    __tablename__ = "engineers"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), unique=True, nullable=True)
    employee_id = Column(String(50), unique=True, nullable=False, index=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="engineer")
    weekly_hour_requirement = Column(Float, nullable=False, default=40)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    __table_args__ = (
        CheckConstraint("role IN ('engineer', 'admin', 'limited_admin')"),
        CheckConstraint("weekly_hour_requirement > 0"),
    )
    user = relationship("User", back_populates="engineer")
    activities = relationship("DailyActivity", back_populates="engineer", cascade="all, delete-orphan")

class ServiceCategory(Base):
    __tablename__ = "service_categories"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class DailyActivity(Base):
    __tablename__ = "daily_activities"
    id = Column(Integer, primary_key=True, index=True)
    engineer_id = Column(Integer, ForeignKey("engineers.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_date = Column(Date, nullable=False, index=True)
    customer_name = Column(String(200), nullable=True)
    site_location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="executed")
    total_hours = Column(Float, nullable=False, default=0)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    # Bumped on every save; clients may send it back to detect a concurrent overwrite
    version = Column(Integer, nullable=False, default=1)
    __table_args__ = (
        UniqueConstraint("engineer_id", "activity_date", name="uq_activity_engineer_date"),
        CheckConstraint("status IN ('planning', 'executed')"),
    )
    engineer = relationship("Engineer", back_populates="activities")
    hours = relationship("ActivityHour", back_populates="activity", cascade="all, delete-orphan",
                         order_by="ActivityHour.id")

class ActivityHour(Base):
    __tablename__ = "activity_hours"
    id = Column(Integer, primary_key=True, index=True)
    daily_activity_id = Column(Integer, ForeignKey("daily_activities.id", ondelete="CASCADE"), nullable=False, index=True)
    service_category_id = Column(Integer, ForeignKey("service_categories.id"), nullable=True)
    hours = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    __table_args__ = ( CheckConstraint("hours > 0"), )
    activity = relationship("DailyActivity", back_populates="hours")
    category = relationship("ServiceCategory")

class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    message = Column(Text, nullable=False)
    recipient_type = Column(String(20), nullable=False)
    recipient_engineer_id = Column(Integer, ForeignKey("engineers.id", ondelete="CASCADE"), nullable=True, index=True)
    sent_by = Column(Integer, ForeignKey("engineers.id", ondelete="SET NULL"), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)
    __table_args__ = ( CheckConstraint("recipient_type IN ('all', 'specific')"), )
    reads = relationship("NotificationRead", back_populates="notification", cascade="all, delete-orphan")

class NotificationRead(Base):
    """Per-recipient read marker; its existence means 'read'."""
    __tablename__ = "notification_reads"
    id = Column(Integer, primary_key=True, index=True)
    notification_id = Column(Integer, ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False)
    engineer_id = Column(Integer, ForeignKey("engineers.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=False)
    __table_args__ = ( UniqueConstraint("notification_id", "engineer_id", name="uq_notification_read"), )
    notification = relationship("Notification", back_populates="reads")
