"""
Review loop: validation, questions, answer merging and the store-backed workflow.
"""

from .merger import ResolutionMerger, ReviewAnswerInvalid
from .questions import QuestionGenerator
from .validator import Deficiency, DeficiencyKind, ValidationResult, Validator
from .workflow import ReviewResult, ReviewWorkflow

__all__ = [
    "Deficiency",
    "DeficiencyKind",
    "QuestionGenerator",
    "ResolutionMerger",
    "ReviewAnswerInvalid",
    "ReviewResult",
    "ReviewWorkflow",
    "ValidationResult",
    "Validator",
]
