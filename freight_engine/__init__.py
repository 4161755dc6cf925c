"""Freight-rate index acquisition, storage and fusion."""
