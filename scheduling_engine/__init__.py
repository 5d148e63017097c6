"""Session scheduling and matching engine for the tutoring marketplace"""

__version__ = "1.0.0"
