"""Utility helpers for ospec."""
