"""
Recommendations and badge serving.

Responsibilities:
- Store recommendations and answer recency-ordered queries per username.
- Cache rendered badges for a fixed TTL and coalesce concurrent renders.
- Evaluate conditional request validators for badge responses.
"""
