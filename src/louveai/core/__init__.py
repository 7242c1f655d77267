"""Core configuration and derived views for LouveAI."""
