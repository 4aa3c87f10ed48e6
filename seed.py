"""Create a user directly in the database unless one with that email exists.

    python seed.py --name "Jane Doe" --email jane@expendi.io --password s3cret! --pin 1234
"""

import argparse

from sqlalchemy.orm import Session

from auth import hash_secret
from config import get_settings
from database import Database, User
from logger import configure_logging, get_logger
from schemas import UserCreate

logger = get_logger(__name__)


def seed_user(db: Session, user: UserCreate, rounds: int = 12) -> User:
    existing = db.query(User).filter(User.email == user.email).first()
    if existing:
        return existing

    new_user = User(
        name=user.name,
        email=user.email,
        password=hash_secret(user.password, rounds),
        pin=hash_secret(user.pin, rounds),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("user_seeded", user_id=new_user.id)
    return new_user


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed an Expendi user")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--pin", required=True)
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.is_production)
    user = UserCreate(name=args.name, email=args.email, password=args.password, pin=args.pin)

    database = Database(settings.database_url)
    database.create_all()
    try:
        with database.SessionLocal() as db:
            seeded = seed_user(db, user, settings.bcrypt_rounds)
            print(f"{seeded.id}\t{seeded.email}")
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
