"""Progression engine for a biometric pet: achievements, streaks, weekly challenges and cosmetics"""

__version__ = "0.1.0"
