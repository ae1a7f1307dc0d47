"""
Global fault sources.

``FaultHooks`` turns process-wide fault signals into observations on a
``ManualObservationSource`` that the error collector subscribes to:

- ``sys.excepthook`` and ``threading.excepthook``  -> ``error``
- asyncio loop exception handler (e.g. a task exception nobody retrieved)
                                                   -> ``unhandledrejection``
- ``report_component_error`` (component boundaries) -> ``component-error``

Previously installed hooks are chained, not replaced, and restored by
``uninstall``. Faults raised on worker threads are handed to the hooked
event loop with ``call_soon_threadsafe`` so subscribers run on the loop thread.
"""

from __future__ import annotations

import asyncio
import sys
import threading
import traceback
from types import TracebackType
from typing import Any

from signalbox.observation import ManualObservationSource, Observation


def exception_observation(
    entry_type: str,
    exc: BaseException,
    **attributes: Any,
) -> Observation:
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    origin = frames[-1] if frames else None
    return Observation(
        entry_type=entry_type,
        name=str(exc) or type(exc).__name__,
        attributes={
            "exception_type": type(exc).__name__,
            "stack": "".join(traceback.format_exception(exc)),
            "filename": origin.filename if origin else None,
            "lineno": origin.lineno if origin else None,
            "colno": origin.colno if origin else None,
            **attributes,
        },
    )


class FaultHooks:
    def __init__(self, source: ManualObservationSource | None = None) -> None:
        self.source = source or ManualObservationSource()
        self._installed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_excepthook: Any = None
        self._previous_threading_hook: Any = None
        self._previous_loop_handler: Any = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Install the hooks (idempotent). ``loop`` defaults to the running loop."""
        if self._installed:
            return

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        self._previous_threading_hook = threading.excepthook
        threading.excepthook = self._threading_excepthook

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self._loop = loop
            self._previous_loop_handler = loop.get_exception_handler()
            loop.set_exception_handler(self._loop_exception_handler)

        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return

        sys.excepthook = self._previous_excepthook
        threading.excepthook = self._previous_threading_hook
        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._installed = False

    def report_component_error(
        self,
        exc: BaseException,
        component_name: str,
        component_stack: str | None = None,
        error_boundary: str | None = None,
    ) -> None:
        """Report a fault caught at a component boundary."""
        self.source.emit(
            exception_observation(
                "component-error",
                exc,
                component_name=component_name,
                component_stack=component_stack,
                error_boundary=error_boundary,
            )
        )

    # =========================================================================
    # Hooks
    # =========================================================================

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            self.source.emit(exception_observation("error", exc.with_traceback(tb)))
        if self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc, tb)

    def _threading_excepthook(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is not None:
            self._emit_threadsafe(
                exception_observation(
                    "error",
                    args.exc_value,
                    thread=args.thread.name if args.thread else None,
                )
            )
        if self._previous_threading_hook is not None:
            self._previous_threading_hook(args)

    def _emit_threadsafe(self, obs: Observation) -> None:
        """Emit on the hooked loop's thread; subscribers mutate loop-owned buffers."""
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            self.source.emit(obs)
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            self.source.emit(obs)
        else:
            loop.call_soon_threadsafe(self.source.emit, obs)

    def _loop_exception_handler(
        self,
        loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
    ) -> None:
        exc = context.get("exception")
        if isinstance(exc, BaseException):
            obs = exception_observation("unhandledrejection", exc, reason=context.get("message"))
        else:
            obs = Observation(
                entry_type="unhandledrejection",
                name=str(context.get("message") or "Unhandled Promise Rejection"),
                attributes={"reason": context.get("message")},
            )
        self.source.emit(obs)

        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)
