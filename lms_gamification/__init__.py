"""
LMS Gamification Engine

Turns learning events into XP, streaks, achievements and leaderboards
for a learning-management application.
"""

__version__ = "1.0.0"
