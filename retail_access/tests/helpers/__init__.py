"""Shared builders for hierarchy tests."""
