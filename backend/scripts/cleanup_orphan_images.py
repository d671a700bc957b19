"""Cleanup orphan project/service images.

Usage:
  python scripts/cleanup_orphan_images.py                      # dry-run
  python scripts/cleanup_orphan_images.py --apply              # delete orphan files
  python scripts/cleanup_orphan_images.py --apply --grace-minutes 0
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cms.database import SessionLocal
from cms.services import orphan_sweep_service
from cms.services.storage_service import get_storage


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Actually delete orphan files")
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=None,
        help="Skip files modified within this many minutes (default: ORPHAN_GRACE_MINUTES)",
    )
    parser.add_argument(
        "--namespace",
        action="append",
        dest="namespaces",
        help="Limit the sweep to a namespace (repeatable; default: projects and services)",
    )
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        result = orphan_sweep_service.sweep_orphan_images(
            db,
            get_storage(),
            namespaces=args.namespaces or orphan_sweep_service.MEDIA_NAMESPACES,
            dry_run=not args.apply,
            grace_minutes=args.grace_minutes,
        )
    finally:
        db.close()

    print("Orphan image cleanup result")
    print(f"  dry_run: {result['dry_run']}")
    print(f"  total_count: {result['total_count']}")
    print(f"  used_count: {result['used_count']}")
    print(f"  orphan_count: {result['orphan_count']}")
    print(f"  skipped_recent_count: {result['skipped_recent_count']}")
    print(f"  deleted_count: {result['deleted_count']}")
    if result["orphan_references"]:
        print("  orphan_references:")
        for ref in result["orphan_references"]:
            print(f"    - {ref}")
    return result


if __name__ == "__main__":
    main()
