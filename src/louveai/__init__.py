"""LouveAI - Worship repertory composer.

This package provides tools for:
- Composing a service repertory from per-category quotas with an LLM
- Swapping or adjusting single songs while avoiding recent repeats
- Scheduling finalized repertories for upcoming services
"""

__version__ = "0.1.0"
