"""
Interface layer package.

Command-line interface over the application services.
"""
