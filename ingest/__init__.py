"""
Ingest package: remote activity sources and their error taxonomy.
"""
