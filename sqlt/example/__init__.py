"""
Example application: a small users API on top of sqlt.
"""
