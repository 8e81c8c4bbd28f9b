"""
Create a user (e.g. the first admin). Run from project root:
  python -m mylibrary.scripts.create_user EMAIL USERNAME PASSWORD [role]
Example:
  python -m mylibrary.scripts.create_user admin@example.com admin 'your-secure-password' admin
"""
import argparse
import logging
import sys

from mylibrary.core.database import SessionLocal
from mylibrary.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    hash_password,
)
from mylibrary.services.users import DuplicateAccountError, UserStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a MyLibrary user, bypassing registration.")
    parser.add_argument("email", help="Account email")
    parser.add_argument("username", help=f"Username (1-{USERNAME_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin"])
    parser.add_argument(
        "--verified",
        action="store_true",
        help="Mark the email as already verified",
    )
    args = parser.parse_args(argv)

    email = args.email.strip().lower()
    username = args.username.strip()
    if "@" not in email:
        logger.error("Invalid email address.")
        return 1
    if not username or len(username) > USERNAME_MAX_LEN:
        logger.error("Invalid username length.")
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        logger.error("Password must be %s-%s characters.", PASSWORD_MIN_LEN, PASSWORD_MAX_LEN)
        return 1

    db = SessionLocal()
    try:
        store = UserStore(db)
        user = store.create(
            email=email,
            username=username,
            password_hash=hash_password(args.password),
            role=args.role,
        )
        if args.verified:
            store.update_by_id(user.id, email_is_verified=True)
        logger.info("Created user %s (%s) with role %s", username, email, args.role)
        return 0
    except DuplicateAccountError as e:
        logger.error("%s", e.message)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
