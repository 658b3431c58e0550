#!/usr/bin/env python3
"""
Quick script to read and display Firestore collections
"""
import os
import sys
from dotenv import load_dotenv

from services.firestore_client import get_firestore_client
from services.firestore_repo import KNOWN_COLLECTIONS, collection_counts, snapshot_to_dict
from services.sync_jobs import SYNC_JOBS_COLLECTION

# Load environment variables
load_dotenv()

SAMPLE_SIZE = 5


def print_collection(db, collection: str, total: int) -> None:
    print(f"\n{'=' * 80}")
    print(f"📋 COLLECTION: {collection}")
    print('=' * 80)
    print(f"\n📊 Total Documents: {total}")

    samples = [snapshot_to_dict(s) for s in db.collection(collection).limit(SAMPLE_SIZE).stream()]
    if not samples:
        print("\n⚠️  No documents in this collection")
        return

    print(f"\n🔍 Sample Data (first {SAMPLE_SIZE} documents):")
    print("-" * 80)

    for i, document in enumerate(samples, 1):
        print(f"\nDocument {i}:")
        for key, value in document.items():
            # Truncate long values
            str_value = str(value)
            if len(str_value) > 100:
                str_value = str_value[:100] + "..."
            print(f"  {key}: {str_value}")


def main() -> int:
    try:
        db = get_firestore_client()
    except Exception as e:
        print(f"❌ Error: could not connect to Firestore: {str(e)}")
        return 1

    print("=" * 80)
    print("📊 FIRESTORE DATABASE OVERVIEW")
    print("=" * 80)
    print(f"\nProject: {os.getenv('FIREBASE_PROJECT_ID', '(from credentials)')}\n")

    counts = collection_counts(db)
    counts[SYNC_JOBS_COLLECTION] = sum(1 for _ in db.collection(SYNC_JOBS_COLLECTION).stream())

    for collection in (*KNOWN_COLLECTIONS, SYNC_JOBS_COLLECTION):
        try:
            print_collection(db, collection, counts[collection])
        except Exception as e:
            print(f"\n❌ Error reading collection: {str(e)}")

    print("\n" + "=" * 80)
    print("✅ Database scan complete!")
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
