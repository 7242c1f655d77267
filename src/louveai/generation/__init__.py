"""Generation pipeline for LouveAI.

This module provides tools for:
- Composing generation requests from quotas and recency history
- Calling the LLM through an OpenAI-compatible endpoint
- Validating and tagging returned song candidates
"""
