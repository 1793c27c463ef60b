"""Prompt templates used by the generation service."""
