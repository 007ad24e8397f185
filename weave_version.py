"""
Single source of truth for the Weave backend version.
"""
__version__ = "0.4.0"
