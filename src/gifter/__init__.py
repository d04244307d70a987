"""Gifter tier calculator: point-balance tiers, coin price history, and daily price upserts."""
