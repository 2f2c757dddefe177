"""Interactive split-view session picker."""

from cxresume.picker.app import PickerOptions, SessionPicker, SessionStore, pick_session
from cxresume.picker.cache import PrefetchCache, PreviewKey
from cxresume.picker.formatter import format_preview
from cxresume.picker.machine import reduce
from cxresume.picker.prefetch import LivenessToken, PrefetchScheduler
from cxresume.picker.state import PickerState, ReducerContext

__all__ = [
    "LivenessToken",
    "PickerOptions",
    "PickerState",
    "PrefetchCache",
    "PrefetchScheduler",
    "PreviewKey",
    "ReducerContext",
    "SessionPicker",
    "SessionStore",
    "format_preview",
    "pick_session",
    "reduce",
]
