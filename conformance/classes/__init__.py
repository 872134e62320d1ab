from .types import (
    RunOnRequirement,
    FailPoint,
    Operation,
    ExpectedCommandEvent,
    SpecTestCase,
    SpecTestFile,
    parse_version,
)

__all__ = [
    "RunOnRequirement",
    "FailPoint",
    "Operation",
    "ExpectedCommandEvent",
    "SpecTestCase",
    "SpecTestFile",
    "parse_version",
]
