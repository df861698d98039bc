# fieldlog/db/init_db.py
# Creates tables, seeds service categories and, optionally, the first admin.
# Run with: python -m fieldlog.db.init_db
import logging

from sqlalchemy.orm import Session

from fieldlog.core import security
from fieldlog.core.config import settings
from fieldlog.core.logging import configure_logging
from fieldlog.db import models
from fieldlog.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Installation", "New equipment installation on site"),
    ("Commissioning", "Start-up, configuration and acceptance testing"),
    ("Maintenance", "Scheduled preventive maintenance"),
    ("Repair", "Corrective work and fault finding"),
    ("Calibration", "Instrument calibration and verification"),
    ("Training", "Customer or internal training"),
    ("Travel", "Travel to and from site"),
    ("Documentation", "Reports, certificates and paperwork"),
    ("Support", "Remote or phone support"),
]


def seed_categories(db: Session) -> int:
    created = 0
    for name, description in DEFAULT_CATEGORIES:
        if db.query(models.ServiceCategory).filter(models.ServiceCategory.name == name).first():
            logger.info("Service category '%s' already exists. Skipping.", name)
            continue
        db.add(models.ServiceCategory(name=name, description=description, is_active=True))
        created += 1
        logger.info("Seeded service category: %s", name)
    db.commit()
    return created


def next_admin_code(db: Session) -> str:
    """First free code in the ADMIN001, ADMIN002, ... sequence."""
    taken = {
        code for (code,) in db.query(models.Engineer.employee_id)
        .filter(models.Engineer.employee_id.like("ADMIN%")).all()
    }
    number = 1
    while f"ADMIN{number:03d}" in taken:
        number += 1
    return f"ADMIN{number:03d}"


def seed_first_admin(db: Session, email: str, password: str) -> models.Engineer:
    """Creates (or promotes) the bootstrap admin account and profile."""
    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        user = models.User(email=email, full_name="Administrator", hashed_password=security.get_password_hash(password))
        db.add(user)
        db.flush()
        logger.info("Created admin account: %s", email)

    engineer = db.query(models.Engineer).filter(models.Engineer.email == email).first()
    if engineer is None:
        engineer = models.Engineer(
            user_id=user.id,
            employee_id=next_admin_code(db),
            full_name=user.full_name or "Administrator",
            email=email,
            role="admin",
            weekly_hour_requirement=settings.DEFAULT_WEEKLY_HOURS,
            is_active=True,
        )
        db.add(engineer)
        logger.info("Created admin profile for %s", email)
    else:
        engineer.role = "admin"
        engineer.is_active = True
        engineer.user_id = engineer.user_id or user.id
        logger.info("Promoted %s to admin", email)
    db.commit()
    db.refresh(engineer)
    return engineer


def init() -> None:
    logger.info("Creating tables...")
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_categories(db)
        if settings.FIRST_ADMIN_EMAIL and settings.FIRST_ADMIN_PASSWORD:
            seed_first_admin(db, settings.FIRST_ADMIN_EMAIL, settings.FIRST_ADMIN_PASSWORD)
        else:
            logger.info("FIRST_ADMIN_EMAIL/FIRST_ADMIN_PASSWORD not set; no admin seeded")
    finally:
        db.close()
    logger.info("Initialization complete!")


if __name__ == "__main__":
    configure_logging()
    init()
