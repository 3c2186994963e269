"""Availability-Rate-Inventory reconciliation engine for the channel-management calendar."""
