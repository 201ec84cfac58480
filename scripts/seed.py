# File: scripts/seed.py
"""Bootstrap a super admin and, optionally, a handful of demo issues.

    python -m scripts.seed                # admin only
    python -m scripts.seed --demo         # admin + sample issues

SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD are read from the environment
(or .env). An existing account with that email is promoted, not recreated.
"""
import argparse
import logging
import os

from dotenv import load_dotenv

load_dotenv(override=True)

from app.core.logging_config import configure_logging  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.db.session import SessionLocal  # noqa: E402
from app.models.issue import Issue, IssueStatus  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services import issue_lifecycle as lifecycle  # noqa: E402

logger = logging.getLogger("scripts.seed")

DEMO_ISSUES = [
    ("Pothole on Main St", "POTHOLE", [153.0260, -27.4698], "HIGH", ["road"]),
    ("Street light out near the park", "STREET_LIGHT", [153.0281, -27.4710], "MEDIUM", ["lighting"]),
    ("Graffiti on bus shelter", "GRAFFITI", [153.0235, -27.4675], "LOW", []),
    ("Overflowing bins at the market", "TRASH", [153.0302, -27.4731], "MEDIUM", ["waste"]),
    ("Burst water main", "WATER_LEAK", [153.0190, -27.4652], "URGENT", ["water"]),
]


def ensure_admin(db, email: str, password: str) -> User:
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        if user.role != UserRole.super_admin or not user.is_active:
            user.role = UserRole.super_admin
            user.is_active = True
            db.commit()
            logger.info("promoted %s to super_admin", email)
        else:
            logger.info("super_admin %s already present", email)
        return user
    user = User(
        email=email,
        name="Administrator",
        hashed_password=hash_password(password),
        role=UserRole.super_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("created super_admin %s", email)
    return user


def seed_demo(db, admin: User) -> int:
    if db.query(Issue).count():
        logger.info("issues already present, skipping demo data")
        return 0
    for i, (title, kind, coords, priority, tags) in enumerate(DEMO_ISSUES):
        issue = lifecycle.create_issue(
            db,
            admin.id,
            title=title,
            type=kind,
            location={"geo": {"type": "Point", "coordinates": coords}, "suburb": "Brisbane City"},
            priority=priority,
            tags=tags,
        )
        if i % 2:
            lifecycle.change_status(db, issue.id, admin.id, IssueStatus.IN_PROGRESS, "Crew scheduled")
    logger.info("created %d demo issues", len(DEMO_ISSUES))
    return len(DEMO_ISSUES)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the issues database")
    parser.add_argument("--demo", action="store_true", help="also create sample issues")
    args = parser.parse_args()

    configure_logging()
    email = os.getenv("SEED_ADMIN_EMAIL")
    password = os.getenv("SEED_ADMIN_PASSWORD")
    if not email or not password:
        raise SystemExit("SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD must be set")

    db = SessionLocal()
    try:
        admin = ensure_admin(db, email, password)
        if args.demo:
            seed_demo(db, admin)
    finally:
        db.close()


if __name__ == "__main__":
    main()
