"""Application package for the Exam Portal: timed multiple-choice exams with scored attempts."""

__version__ = "1.0.0"
