"""Create an admin account. Admins cannot register over the API."""
import sys
import getpass

from dotenv import load_dotenv

load_dotenv()

from database import init_db
from fastapi import HTTPException
from service_modules.auth_service import auth_service


def create_admin(email, password, username=None):
    init_db()
    try:
        result = auth_service.create_admin(email, password, username)
    except HTTPException as e:
        print(f"Error: {e.detail}")
        return 1
    print(f"Created admin '{email}' ({result['user_id']})")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python create_admin.py <email> [username]")
        sys.exit(1)
    password = getpass.getpass("Password: ")
    sys.exit(create_admin(sys.argv[1], password, sys.argv[2] if len(sys.argv) > 2 else None))
