#!/usr/bin/env python3
"""
Run the storage linter against the configured bucket.

Uploads a small file, checks download/exists/url/delete/clear/presign,
then clears what it wrote. Use it to verify credentials, bucket policy
and S3-compatible endpoints before deploying.

Usage:
    python scripts/lint_storage.py
    python scripts/lint_storage.py --prefix lint-check --warn

Requires:
    - .env file (or environment) with S3_* settings
"""

import logging
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from attachment_storage.config.settings import Settings
from attachment_storage.core.errors import StorageError
from attachment_storage.core.linter import LintError, StorageLinter
from attachment_storage.infrastructure.storage import create_storage


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Check a storage backend against the Storage contract')
    parser.add_argument('--prefix', default='lint', help='Key prefix to lint under (keeps other files safe from clear)')
    parser.add_argument('--warn', action='store_true', help='Report every failure instead of stopping at the first')
    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    # The linter clears the storage, so never run it on the unprefixed bucket
    settings = Settings(s3_prefix=args.prefix)

    missing = settings.validate_required_fields()
    if missing:
        print(f"ERROR: Missing configuration: {', '.join(missing)}")
        sys.exit(1)

    storage = create_storage(settings)
    print(f"Linting {type(storage).__name__} (bucket={settings.s3_bucket!r}, prefix={args.prefix!r})")

    linter = StorageLinter(storage, action='warn' if args.warn else 'error')

    try:
        passed = linter.call()
    except LintError as e:
        print(f"FAILED: {e}")
        sys.exit(1)
    except StorageError as e:
        print(f"ERROR talking to storage: {e}")
        sys.exit(1)

    if not passed:
        print("FAILED:")
        for error in linter.errors:
            print(f"  {error}")
        sys.exit(1)

    print("OK: storage passed all checks")


if __name__ == '__main__':
    main()
