"""
Analysis module - Versioned transcription and summary history.
"""

from .history import AnalysisHistoryService

__all__ = ["AnalysisHistoryService"]
