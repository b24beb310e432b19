"""Fetch utilities - fault classification, retries, paging, throttling."""

from .errors import (
    FaultCategory,
    FaultRecord,
    TerminalFailure,
    classify,
    classify_fault,
    should_retry,
)
from .retries import Result, RetryExecutor, RetryPolicy
from .throttling import InterCallDelay
from .paging import Page, PagedFetcher

__all__ = [
    "FaultCategory",
    "FaultRecord",
    "TerminalFailure",
    "classify",
    "classify_fault",
    "should_retry",
    "Result",
    "RetryExecutor",
    "RetryPolicy",
    "InterCallDelay",
    "Page",
    "PagedFetcher",
]
