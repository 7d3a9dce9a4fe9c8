"""
Flow Builder — graph consistency engine for a visual agent/tool/workflow
pipeline builder.
"""

__version__ = "0.1.0"
