"""
Print a bearer token for SUPER_ADMIN_EMAIL.

Usage:
  python -m app.scripts.issue_super_admin_token
  python -m app.scripts.issue_super_admin_token --minutes 480
"""

import argparse
import sys

from app.auth.security import create_super_admin_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a super-admin access token.")
    parser.add_argument("--minutes", type=int, default=None, help="Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)")
    args = parser.parse_args()
    try:
        print(create_super_admin_token(expires_minutes=args.minutes))
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
