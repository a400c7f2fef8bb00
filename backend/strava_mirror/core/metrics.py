"""Prometheus counters for the sync engine (exposed via /metrics)."""

from prometheus_client import Counter

SYNC_PASSES = Counter(
    "strava_sync_passes_total",
    "Completed sync passes by kind",
    ["kind"],
)
SYNC_RECORD_FAILURES = Counter(
    "strava_sync_record_failures_total",
    "Records skipped during a sync pass because fetching or storing them failed",
    ["kind"],
)
TOKEN_REFRESHES = Counter(
    "strava_token_refreshes_total",
    "Strava access token refresh attempts by outcome",
    ["outcome"],
)
REMOTE_MIRROR_FAILURES = Counter(
    "strava_remote_mirror_failures_total",
    "Best-effort remote writes (photo upload, primary photo) that failed",
    ["operation"],
)
