"""
Lesson lifecycle workflows.

- generator: weekly template expansion and reconciliation
- trigger: debounced lazy generation
- carry_over: homework forwarding between lessons
- homework: user homework edits
- cancellation: cancel with makeup / forward to next lesson
- layout: side-by-side placement of a day's items
"""

from .generator import GenerationReport, PlannedLesson, ScheduleGenerator, plan_lessons
from .trigger import GenerationTrigger, TriggerState
from .carry_over import CarryOverOutcome, HomeworkCarryOver, flatten_assignments, merge_checks
from .homework import HomeworkEditor, normalize_assignments
from .cancellation import CancellationOutcome, CancellationWorkflow, CancelMode, PendingCancel
from .layout import LayoutSlot, layout_day
from .index import OccurrenceIndex

__all__ = [
    "GenerationReport",
    "PlannedLesson",
    "ScheduleGenerator",
    "plan_lessons",
    "GenerationTrigger",
    "TriggerState",
    "CarryOverOutcome",
    "HomeworkCarryOver",
    "flatten_assignments",
    "merge_checks",
    "HomeworkEditor",
    "normalize_assignments",
    "CancellationOutcome",
    "CancellationWorkflow",
    "CancelMode",
    "PendingCancel",
    "LayoutSlot",
    "layout_day",
    "OccurrenceIndex",
]
