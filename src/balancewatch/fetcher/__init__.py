"""Per-wallet fetching: quick APIs, rendering, retries and fallback."""
