"""Utility script to issue a development access token for the realtime API."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from datetime import timedelta

from portal.infrastructure.security import create_access_token


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for token creation."""

    parser = argparse.ArgumentParser(
        description="Issue a signed access token for the church portal realtime API.",
    )
    parser.add_argument("subject", help="Member or administrator id placed in the token")
    parser.add_argument(
        "--name",
        default="",
        help="Display name stored in the token (default: empty)",
    )
    parser.add_argument(
        "--role",
        default="user",
        help="Role of the caller, e.g. user, pastor or admin (default: user)",
    )
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Lifetime of the token in minutes (default: ACCESS_TOKEN_EXPIRE_MINUTES)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> str:
    """Print and return a token built from the provided command line arguments."""

    args = parse_args(argv)
    if args.minutes is not None and args.minutes <= 0:
        raise SystemExit("The token lifetime must be a positive number of minutes.")

    expires = timedelta(minutes=args.minutes) if args.minutes is not None else None
    token = create_access_token(
        {"sub": args.subject, "name": args.name, "role": args.role},
        expires_delta=expires,
    )
    print(token)
    return token


if __name__ == "__main__":
    main()
