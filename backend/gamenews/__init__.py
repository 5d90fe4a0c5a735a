"""
Game News Relay - polls game publishers for news and fans new items out to
subscribed Discord channels, exactly once per subscriber.
"""

__version__ = "0.1.0"
