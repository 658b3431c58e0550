"""Service layer: Airtable, Firestore, TikTok and sync logic."""
