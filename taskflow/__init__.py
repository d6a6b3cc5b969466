"""
TaskFlow backend - real-time collaboration layer for the task board.
"""

__version__ = "2.0.0"
