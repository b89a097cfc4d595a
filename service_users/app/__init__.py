"""
Users Service application package.
"""
