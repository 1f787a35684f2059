"""Route Recall - voice-driven delivery zone lookup and drills.

Helps a courier recall which delivery zone a street belongs to:
1. Lookup: map noisy spoken or typed street names to address records
2. Drills: spaced-review quizzes with a mistake pool for weak streets
"""

__version__ = "0.1.0"
