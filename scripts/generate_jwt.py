from __future__ import annotations

import argparse
from datetime import datetime, timedelta

import jwt


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a session token for the Prospect AI API.")
    parser.add_argument("--secret", required=True)
    parser.add_argument("--subject", required=True, help="User id placed in the sub claim.")
    parser.add_argument("--email", default="")
    parser.add_argument("--hours", type=int, default=12)
    parser.add_argument("--algorithm", default="HS256")
    args = parser.parse_args()

    payload = {
        "sub": args.subject,
        "exp": datetime.utcnow() + timedelta(hours=args.hours),
    }
    if args.email.strip():
        payload["email"] = args.email.strip()
    token = jwt.encode(payload, args.secret, algorithm=args.algorithm)
    print(token)


if __name__ == "__main__":
    main()
