"""Shared models for coursegraph."""
