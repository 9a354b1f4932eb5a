"""Prompt builders for each session phase."""
