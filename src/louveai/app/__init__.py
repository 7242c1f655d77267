"""LouveAI application layer: storage, orchestration, and the CLI."""
