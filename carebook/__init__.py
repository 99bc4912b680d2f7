"""CareBook: doctor discovery, slot booking and a symptom chat assistant."""

__version__ = "1.0.0"
