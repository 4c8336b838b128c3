"""
autoheal
--------
Remembers which locator last worked for a logical UI target and reduces a
page's markup into bounded repair context when that memory goes stale.
"""

__version__ = "0.1.0"
