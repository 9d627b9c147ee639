"""
Create a Development Access Token

Prints a signed bearer token for calling the API locally, e.g. as an
admissions officer of one school or as a guardian.

Usage:
    cd apps/api
    python scripts/create_dev_token.py --role admissions_officer --school school-dev
    python scripts/create_dev_token.py --role parent --email parent@example.com --school school-dev
"""

import argparse
import uuid

from gsos.core.auth import Permission, UserRole
from gsos.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a development access token")
    parser.add_argument("--role", choices=[r.value for r in UserRole], required=True)
    parser.add_argument("--school", dest="school_id", default=None)
    parser.add_argument("--email", default="dev@gsos.dev")
    parser.add_argument("--user-id", default=None)
    parser.add_argument(
        "--permission",
        action="append",
        default=[],
        choices=[p.value for p in Permission],
        help="Extra permission on top of the role defaults (repeatable)",
    )
    args = parser.parse_args()

    token = create_access_token(
        args.user_id or str(uuid.uuid4()),
        email=args.email,
        role=args.role,
        school_id=args.school_id,
        permissions=args.permission,
    )
    print(token)


if __name__ == "__main__":
    main()
