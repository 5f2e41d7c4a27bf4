"""
Flow Assist - natural-language editing, translation and narration of step-by-step flows.
"""

__version__ = "0.1.0"
