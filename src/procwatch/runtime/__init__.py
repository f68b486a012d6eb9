"""Runtime module for subprocess execution and output watching.

This module provides isolated process execution with reliable termination,
output capture with marker detection, and the one-shot primitives the
supervisor's control loop waits on.
"""

from __future__ import annotations

from .channels import SignalChannel
from .output import LineLogger, OutputBuffer, TeeSink
from .process_runner import ProcessRunner, ProcessSpec, Session
from .watchers import Deadline, Detection, watch

__all__ = [
    "Deadline",
    "Detection",
    "LineLogger",
    "OutputBuffer",
    "ProcessRunner",
    "ProcessSpec",
    "Session",
    "SignalChannel",
    "TeeSink",
    "watch",
]
