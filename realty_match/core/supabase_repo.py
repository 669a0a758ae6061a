from __future__ import annotations

import asyncio
import os
from datetime import datetime, timezone

from supabase import Client, create_client

from realty_match.core.errors import ConfigurationError
from realty_match.core.models import EnrichmentRecord, Listing, MatchResult
from realty_match.core.normalize import (
    enrichment_to_record,
    listing_to_record,
    match_result_to_record,
    record_to_enrichment,
    record_to_listing,
)


class SupabaseRepo:
    def __init__(
        self,
        url: str | None = None,
        service_role_key: str | None = None,
        client: Client | None = None,
    ) -> None:
        if client is not None:
            self.client = client
            return
        supabase_url = url or os.environ.get("SUPABASE_URL")
        supabase_key = service_role_key or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        if not supabase_url or not supabase_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required.")
        self.client = create_client(supabase_url, supabase_key)

    def upsert_listings(self, listings: list[Listing]) -> None:
        rows = [listing_to_record(listing) for listing in listings]
        if rows:
            self.client.table("listings").upsert(rows, on_conflict="provider,external_id").execute()

    def get_recent_listings(self, limit: int = 50) -> list[Listing]:
        rows = (
            self.client.table("listings")
            .select("*")
            .order("updated_at", desc=True)
            .limit(limit)
            .execute()
            .data
            or []
        )
        return [record_to_listing(row) for row in rows]

    def save_match_results(self, query_id: str, results: list[MatchResult]) -> None:
        now = datetime.now(timezone.utc)
        rows = [match_result_to_record(query_id, result, now=now) for result in results]
        if rows:
            self.client.table("match_results").upsert(rows, on_conflict="query_id,listing_id").execute()

    def get_enrichment(self, key: str) -> EnrichmentRecord | None:
        rows = (
            self.client.table("listing_enrichment")
            .select("*")
            .eq("cache_key", key)
            .gt("expires_at", datetime.now(timezone.utc).isoformat())
            .limit(1)
            .execute()
            .data
            or []
        )
        return record_to_enrichment(rows[0]) if rows else None

    def put_enrichment(self, key: str, record: EnrichmentRecord, ttl_seconds: int) -> None:
        row = enrichment_to_record(key, record, ttl_seconds)
        self.client.table("listing_enrichment").upsert(row, on_conflict="cache_key").execute()


class SupabaseEnrichmentCache:
    """EnrichmentCache over the listing_enrichment table. Writes are idempotent upserts."""

    def __init__(self, repo: SupabaseRepo) -> None:
        self.repo = repo

    async def get(self, key: str) -> EnrichmentRecord | None:
        return await asyncio.to_thread(self.repo.get_enrichment, key)

    async def put(self, key: str, record: EnrichmentRecord, ttl_seconds: int) -> None:
        await asyncio.to_thread(self.repo.put_enrichment, key, record, ttl_seconds)
