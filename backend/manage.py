"""Out-of-band account provisioning.

    python backend/manage.py create-admin --name "Super Admin" --email admin@eduspace.in --password ...
"""
import argparse
import asyncio
import sys

from config import Settings
from database import configure, create_document, get_db
from schemas import User
from security import hash_password


class ProvisioningError(Exception):
    pass


async def provision_admin(db, name: str, email: str, password: str, phone: str = "") -> dict:
    email = email.lower()
    if len(password) < 8:
        raise ProvisioningError("Password must be at least 8 characters")
    if await db["users"].find_one({"email": email}):
        raise ProvisioningError(f"User already exists with email {email}")
    user = User(name=name, email=email, password=hash_password(password), role="admin", phone=phone, verified=True)
    return await create_document(db, "users", user.model_dump(exclude={"id", "google_id"}))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="EduSpace management commands")
    sub = parser.add_subparsers(dest="command", required=True)
    create = sub.add_parser("create-admin", help="create an admin account")
    create.add_argument("--name", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--phone", default="")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure(settings.database_url, settings.database_name)

    async def run():
        db = await get_db()
        return await provision_admin(db, args.name, args.email, args.password, args.phone)

    try:
        user = asyncio.run(run())
    except ProvisioningError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(f"Admin user created: {user['_id']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
