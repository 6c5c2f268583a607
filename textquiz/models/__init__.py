from textquiz.models.answer import AwaitingAnswer
from textquiz.models.base import Base
from textquiz.models.delivery import DeliveryQueueEntry, DeliveryStatus
from textquiz.models.job_run import JobRun
from textquiz.models.question import Question
from textquiz.models.user import User

__all__ = [
    "Base",
    "User",
    "Question",
    "DeliveryQueueEntry",
    "DeliveryStatus",
    "AwaitingAnswer",
    "JobRun",
]
