#!/usr/bin/env python3
"""Mint a bearer token for the admin endpoints (transactions and leads listings)."""
import argparse
from datetime import timedelta

from shared.utils import create_access_token


def main():
    parser = argparse.ArgumentParser(description="Issue an admin JWT signed with SECRET_KEY")
    parser.add_argument("subject", help="Who the token is issued to, e.g. an e-mail address")
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime in minutes")
    args = parser.parse_args()

    token = create_access_token({"sub": args.subject, "role": "admin"}, timedelta(minutes=args.minutes))
    print(token)


if __name__ == "__main__":
    main()
