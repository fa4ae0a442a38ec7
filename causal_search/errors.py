"""
Exception hierarchy for the Causal Search Engine.

- ConfigurationError  -> bad parameters, rejected at call time
- KnowledgeConflictError -> a pair both required and forbidden
- DataTypeError       -> data of the wrong kind for the chosen test
- GraphError / GraphFormatError -> illegal graph mutations, unreadable graph files
- IndependenceTestError -> a test that could not decide (counted, not fatal)
"""
from __future__ import annotations


class CausalSearchError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(CausalSearchError, ValueError):
    pass


class KnowledgeConflictError(ConfigurationError):
    pass


class DataTypeError(ConfigurationError):
    pass


class GraphError(CausalSearchError, ValueError):
    pass


class GraphFormatError(GraphError):
    pass


class IndependenceTestError(CausalSearchError, RuntimeError):
    pass
