"""
Bootstrap the first superadmin account.

Usage: python scripts/create_superadmin.py <email> <name>
The password is prompted for. An existing account with that email is promoted instead.
"""
import asyncio
import getpass
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from auth.auth_utils import hash_password
from constants import ROLE_SUPERADMIN, USER_STATUS_ACTIVE
from database import users_collection
from utils.validators import validate_password


async def create_superadmin(email: str, name: str, password: str) -> str:
    email = email.lower()
    now = datetime.utcnow()
    existing = await users_collection.find_one({"email": email})
    if existing:
        await users_collection.update_one(
            {"_id": existing["_id"]},
            {"$set": {"role": ROLE_SUPERADMIN, "status": USER_STATUS_ACTIVE, "updated_at": now}},
        )
        return f"Promoted existing user {email} to superadmin"

    await users_collection.insert_one({
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "role": ROLE_SUPERADMIN,
        "status": USER_STATUS_ACTIVE,
        "created_at": now,
        "updated_at": now,
    })
    return f"Created superadmin {email}"


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    email, name = sys.argv[1], " ".join(sys.argv[2:])
    password = getpass.getpass("Password: ")
    problems = validate_password(password)
    if problems:
        print("Password rejected: " + "; ".join(problems))
        sys.exit(1)

    print(asyncio.run(create_superadmin(email, name, password)))
