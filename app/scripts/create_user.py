"""
Create an account through the normal signup path. Run from project root:
  python -m app.scripts.create_user USERNAME EMAIL PASSWORD FIRST LAST [--role-id N]
On an empty database the account becomes the System Administrator, whatever role is given.
Example:
  python -m app.scripts.create_user admin admin@example.com your-secure-password Ada Admin
"""
import argparse
import logging
import sys

from app.api.v1.auth import get_dispatcher, get_token_issuer
from app.core.config import get_auth_config
from app.core.database import SessionLocal
from app.services.auth_service import AuthService
from app.services.errors import AuthServiceError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a user account (bootstraps the first administrator).")
    parser.add_argument("username")
    parser.add_argument("email")
    parser.add_argument("password", help="At least 6 characters")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    parser.add_argument("--role-id", type=int, default=1, help="Requested role (ignored for the first account)")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        service = AuthService(db, get_auth_config(), get_token_issuer(), get_dispatcher())
        result = service.signup(
            username=args.username,
            email=args.email,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            role_id=args.role_id,
        )
    except AuthServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"{result.message} (user id {result.user_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
