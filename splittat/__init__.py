"""
Splittat Package.

Receipt scanning and bill splitting API, plus an async client library for it.
"""

__version__ = "1.0.0"
__description__ = "Receipt scanning and cost splitting API"
