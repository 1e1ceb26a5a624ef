from omnimind.models.user import User
from omnimind.models.project import Project
from omnimind.models.task import Task
from omnimind.models.meeting import Meeting
from omnimind.models.notification import Notification, UserPreferences
from omnimind.models.ai_queue import AIProcessingQueueEntry

__all__ = ["User", "Project", "Task", "Meeting", "Notification", "UserPreferences", "AIProcessingQueueEntry"]
