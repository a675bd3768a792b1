"""
Simulation module for audiometry cases.

This module contains functions and classes for:
- Generating patient cases from age norms and disorder profiles
- Deriving tympanometry, acoustic reflex and DPOAE findings
- Modeling responses to masked and unmasked tones
"""

from .case import Case, Ear, Transducer
from .case_generator import GenerateOptions, generate_case, case_from_thresholds
from .response_model import ResponseEngine, Stimulus, ResponseResult, evaluate_response

__all__ = [
    "Case",
    "Ear",
    "Transducer",
    "GenerateOptions",
    "generate_case",
    "case_from_thresholds",
    "ResponseEngine",
    "Stimulus",
    "ResponseResult",
    "evaluate_response",
]
