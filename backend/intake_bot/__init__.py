"""
Conversational intake bot.
Collects a structured support record over several chat turns and hands
completed cases off to a human support channel.
"""

__version__ = "1.0.0"
