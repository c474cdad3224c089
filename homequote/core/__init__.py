"""
Core application plumbing: settings, logging and database access.
"""
