#!/usr/bin/env python3
"""
Run Airtable Sync Script
========================
Pulls influencer rows from Airtable and upserts them into Firestore,
printing progress as each batch is committed.

Usage:
    python run_airtable_sync.py [--limit 50] [--batch-size 500]

Environment Variables Required:
    - AIRTABLE_API_TOKEN: Your Airtable API token
    - AIRTABLE_BASE_ID: Your Airtable base ID
    - FIREBASE_CREDENTIALS: Service-account JSON path (optional, else default credentials)
"""

import os
import sys
import argparse
from dotenv import load_dotenv

from services.airtable_service import get_airtable_table
from services.airtable_sync import DEFAULT_SYNC_LIMIT, sync_from_airtable
from services.batch_processor import FIRESTORE_BATCH_LIMIT
from services.firestore_client import get_firestore_client

# Load environment variables
load_dotenv()


# ANSI color codes for terminal output
class Colors:
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    BOLD = '\033[1m'
    END = '\033[0m'


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Sync Airtable influencers into Firestore.')
    parser.add_argument('--limit', type=int, default=DEFAULT_SYNC_LIMIT,
                        help=f'Maximum Airtable rows to pull (default: {DEFAULT_SYNC_LIMIT})')
    parser.add_argument('--batch-size', type=int, default=FIRESTORE_BATCH_LIMIT,
                        help=f'Firestore writes per commit, 1-{FIRESTORE_BATCH_LIMIT} (default: {FIRESTORE_BATCH_LIMIT})')
    return parser.parse_args(argv)


def print_progress(message: str) -> None:
    print(f"   {Colors.BLUE}→{Colors.END} {message}")


def main(argv=None) -> int:
    """Main execution function. Returns the process exit code."""
    args = parse_args(argv)

    print(f"\n{Colors.BOLD}🔄 Airtable → Firestore Sync{Colors.END}")
    print("=" * 50)

    if not os.getenv('AIRTABLE_API_TOKEN'):
        print(f"{Colors.RED}✗ Error: AIRTABLE_API_TOKEN not found in .env file{Colors.END}")
        return 1

    if not os.getenv('AIRTABLE_BASE_ID'):
        print(f"{Colors.RED}✗ Error: AIRTABLE_BASE_ID not found in .env file{Colors.END}")
        return 1

    print(f"\n{Colors.BLUE}📋 Configuration:{Colors.END}")
    print(f"   Base ID: {os.getenv('AIRTABLE_BASE_ID')}")
    print(f"   Limit: {args.limit}")
    print(f"   Batch size: {args.batch_size}\n")

    try:
        table = get_airtable_table()
        db = get_firestore_client()
        result = sync_from_airtable(
            db,
            table,
            limit=args.limit,
            progress_callback=print_progress,
            batch_size=args.batch_size
        )
    except ValueError as e:
        print(f"\n{Colors.RED}✗ Invalid configuration: {str(e)}{Colors.END}\n")
        return 1
    except Exception as e:
        print(f"\n{Colors.RED}✗ Sync failed: {str(e)}{Colors.END}")
        print(f"{Colors.YELLOW}   Already committed batches are kept; re-running the sync is safe.{Colors.END}\n")
        return 1

    print(f"\n{Colors.BOLD}{'=' * 50}{Colors.END}")
    print(f"{Colors.BOLD}📊 Summary:{Colors.END}")
    print(f"   {Colors.BLUE}📝 Records fetched: {result['total']}{Colors.END}")
    print(f"   {Colors.GREEN}✓ Created: {result['created']}{Colors.END}")
    print(f"   {Colors.GREEN}✓ Updated: {result['updated']}{Colors.END}")
    if result['skipped']:
        print(f"   {Colors.YELLOW}⚠️  Skipped: {result['skipped']}{Colors.END}")
    print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
