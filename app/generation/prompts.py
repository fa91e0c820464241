"""
Prompt Templates
All prompt templates used by the recommender.
Centralized for easy tuning and version control.
"""

# ─── Short-list Rerank ──────────────────────────────────────────────

RERANK_PROMPT = """Rank items 1..N for best match to the given preference profile.
Respond ONLY as JSON array of {{"title": ..., "reason": ...}} in best-to-worst order.

Preference profile (from answers):
{profile}

Candidates:
{candidates}"""
