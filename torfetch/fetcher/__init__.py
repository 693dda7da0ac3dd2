"""Tor transport, circuit control, rendering and the retry state machine."""

from .circuit_controller import CircuitController
from .orchestrator import FetchOrchestrator
from .render_session import RenderSessionFactory

__all__ = ["CircuitController", "FetchOrchestrator", "RenderSessionFactory"]
