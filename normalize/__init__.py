"""
Normalize package: raw hosting-API payloads into activity records.
"""
