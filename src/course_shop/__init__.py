"""
Course shop API: accounts, course catalog, payments and file access
"""
__version__ = "0.1.0"
