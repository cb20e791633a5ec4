"""
Stratum Utils - Logging and secret redaction.
"""
