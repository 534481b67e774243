"""
Report package: render course activity statistics.
"""
