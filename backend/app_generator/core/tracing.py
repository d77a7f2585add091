"""
Tracing Context - contextvars-based context shared by logs of one generation run.

Usage:
    # Set context at the start of a generation run
    TracingContext.set(correlation_id="abc-123", run_id="run-456")

    # Narrow it while handling one app or one build
    TracingContext.set(app_name="todo-app")

    # Get context (automatically added to JSONFormatter logs)
    ctx = TracingContext.get()

    # Clear context at the end
    TracingContext.clear()
"""

import uuid
from contextvars import ContextVar
from typing import Dict

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_run_id: ContextVar[str] = ContextVar("run_id", default="")
_app_name: ContextVar[str] = ContextVar("app_name", default="")
_build_id: ContextVar[str] = ContextVar("build_id", default="")


class TracingContext:
    """Context-local tracing fields for log correlation."""

    @staticmethod
    def set(
        correlation_id: str = "",
        run_id: str = "",
        app_name: str = "",
        build_id: str = "",
    ) -> None:
        """Set tracing context for current execution."""
        if correlation_id:
            _correlation_id.set(correlation_id)
        if run_id:
            _run_id.set(run_id)
        if app_name:
            _app_name.set(app_name)
        if build_id:
            _build_id.set(build_id)

    @staticmethod
    def get() -> Dict[str, str]:
        """Get current tracing context as dict."""
        return {
            "correlation_id": _correlation_id.get(),
            "run_id": _run_id.get(),
            "app_name": _app_name.get(),
            "build_id": _build_id.get(),
        }

    @staticmethod
    def generate_correlation_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def clear() -> None:
        """Reset all tracing fields."""
        _correlation_id.set("")
        _run_id.set("")
        _app_name.set("")
        _build_id.set("")
