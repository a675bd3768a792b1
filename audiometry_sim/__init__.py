"""
Audiometry Sim - Masked pure-tone audiometry training simulator
"""

__version__ = "0.1.0"

# Import main classes and functions for easy access
from .simulation.case_generator import GenerateOptions, generate_case, case_from_thresholds
from .simulation.response_model import ResponseEngine, Stimulus, evaluate_response
from .procedures.session import Session, commit_point
from .procedures.hughson_westlake import ModifiedHughsonWestlakeExaminer
from .analysis.scoring import score
from .analysis.export import export_log
from .utils.config import EngineConfig, load_config

__all__ = [
    "GenerateOptions",
    "generate_case",
    "case_from_thresholds",
    "ResponseEngine",
    "Stimulus",
    "evaluate_response",
    "Session",
    "commit_point",
    "ModifiedHughsonWestlakeExaminer",
    "score",
    "export_log",
    "EngineConfig",
    "load_config",
]
