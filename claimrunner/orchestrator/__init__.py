"""Execution orchestration: sequential paced runs, sampling and background workers."""

from .runner import ExecutionOrchestrator, PacingPolicy, ResolvedCase, RunStatus
from .sampler import TestCaseSampler, group_by_intervention
from .worker import RunRecord, RunState, RunWorker, get_worker, set_worker

__all__ = [
    "ExecutionOrchestrator",
    "PacingPolicy",
    "ResolvedCase",
    "RunStatus",
    "TestCaseSampler",
    "group_by_intervention",
    "RunRecord",
    "RunState",
    "RunWorker",
    "get_worker",
    "set_worker",
]
