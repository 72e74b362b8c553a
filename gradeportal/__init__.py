"""Role-based project submission and grading portal."""

__version__ = "1.0.0"
