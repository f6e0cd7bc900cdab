#!/usr/bin/env python3
"""Print an Argon2 hash of the admin panel password, ready for ADMIN_PASSWORD.

Usage:
    python hash_password.py              # prompts without echoing
    python hash_password.py 'Cuartel2025'
"""
import sys
from getpass import getpass

from sepei.core.sanitization import validate_password_strength
from sepei.core.security import get_password_hash


def main(argv):
    if len(argv) > 2:
        print(__doc__)
        return 1

    if len(argv) == 2:
        password = argv[1]
    else:
        password = getpass("Admin password: ")
        if getpass("Repeat: ") != password:
            print("Error: passwords do not match")
            return 1

    try:
        validate_password_strength(password)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(f"ADMIN_PASSWORD={get_password_hash(password)}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
