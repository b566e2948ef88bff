"""Prompt templates and their assembly."""
