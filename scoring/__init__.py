"""
Scoring package: per-member and per-team activity rollups.
"""
