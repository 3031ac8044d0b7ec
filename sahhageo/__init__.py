"""Sahha GEO pattern cache and optimization layer."""
