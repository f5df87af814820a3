"""Port probing and preview-process supervision."""

from .ports import is_port_bound, is_port_listening, wait_for_port
from .supervisor import PreviewState, PreviewSupervisor, Transition

__all__ = [
    "PreviewState",
    "PreviewSupervisor",
    "Transition",
    "is_port_bound",
    "is_port_listening",
    "wait_for_port",
]
