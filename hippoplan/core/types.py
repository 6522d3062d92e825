"""
Type definitions for Hippoplan.

This module defines the records shared between the capture session, the task
registry and the schedule board, plus the recognition events delivered by a
transcript source. Every record is a pydantic model so that it can be dumped
to plain dictionaries for the persistence layer.
"""

from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

# Fixed weekly grid
DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
PERIODS = ("am", "pm")
SLOTS = (1, 2, 3, 4)

# Valid task priorities, 1 being the most urgent
PRIORITIES = (1, 2, 3, 4)

Period = Literal["am", "pm"]
Priority = Literal[1, 2, 3, 4]


class SessionState(str, Enum):
    """Lifecycle state of a capture session."""

    IDLE = "idle"
    LISTENING = "listening"


class CaptureField(BaseModel):
    """
    One slot in the ordered list of in-progress task texts.

    Attributes:
        text: Current text of the field, empty while awaiting speech
    """

    text: str = Field(default="", description="Field text (empty while awaiting speech)")


class Task(BaseModel):
    """
    A canonical task owned by the task registry.

    Attributes:
        id: Opaque identifier assigned once at creation
        content: Task text, matched exactly during reconciliation
        priority: Optional priority 1-4; None means unprioritized
    """

    id: str = Field(..., min_length=1, description="Stable task identifier")
    content: str = Field(..., description="Task text")
    priority: Optional[Priority] = Field(default=None, description="Priority 1-4, None when unprioritized")


class ScheduleEntry(BaseModel):
    """
    Assignment of a task to one (day, period, slot) triple of the weekly board.
    """

    day: str = Field(..., description="Weekday name")
    period: Period = Field(..., description="Morning (am) or afternoon (pm)")
    slot: int = Field(..., ge=SLOTS[0], le=SLOTS[-1], description="Slot number within the period")
    task_id: str = Field(..., min_length=1, description="Referenced task id, may dangle")

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.day, self.period, self.slot)


class PrioritySection(BaseModel):
    """
    Static descriptive metadata for one priority level.
    """

    id: Priority = Field(..., description="Priority level")
    title: str = Field(..., description="Display title")
    description: str = Field(..., description="What the level means")
    color: str = Field(..., description="Hex display color")


class RecognitionResult(BaseModel):
    """
    A single recognizer hypothesis.

    Final results are stable text for a spoken utterance, interim results are
    provisional and superseded by later events.
    """

    is_final: bool = Field(default=False, description="True once the recognizer committed the text")
    transcript: str = Field(default="", description="Recognized text")


class ResultEvent(BaseModel):
    """
    A batch of recognition results delivered by a transcript source.

    Processing starts at result_index and walks the remaining results in the
    order they were delivered.
    """

    result_index: int = Field(default=0, ge=0, description="Index of the first new result")
    results: List[RecognitionResult] = Field(default_factory=list, description="Results in delivery order")

    def pending(self) -> List[RecognitionResult]:
        """Results that are new in this event."""
        return self.results[self.result_index :]
