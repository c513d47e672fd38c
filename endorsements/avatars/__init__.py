"""
Remote avatar fetching.

Responsibilities:
- Fetch recommender avatars over HTTP(S) with a bounded redirect chain.
- Enforce a request timeout so slow origins cannot stall a render.
- Re-encode the image as an embeddable ``data:`` URI.
- Fall back to a fixed placeholder avatar on any failure.
"""
