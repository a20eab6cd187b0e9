"""
Engines: SQL (Jinja2 templates -> bound, dialect-correct statements).
"""
