"""Core system components"""

from .state import GenerationAttempt, GenerationResult, JobResult, BatchSummary

__all__ = ['GenerationAttempt', 'GenerationResult', 'JobResult', 'BatchSummary']
