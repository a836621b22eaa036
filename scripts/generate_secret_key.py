"""
Print a random SECRET_KEY for signing JWT access and refresh tokens.

Usage:
    python scripts/generate_secret_key.py [num_bytes]
"""

import secrets
import sys


def generate_secret_key(num_bytes: int = 64) -> str:
    return secrets.token_urlsafe(num_bytes)


if __name__ == "__main__":
    num_bytes = int(sys.argv[1]) if len(sys.argv) > 1 else 64
    print(f"SECRET_KEY={generate_secret_key(num_bytes)}")
