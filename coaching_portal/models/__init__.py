from .employee import Employee
from .coaching_session import CoachingSession
from .action_item import ActionItem
from .slack import SlackInstallation, SlackConnection
from .nudge import NudgeTemplate, NudgeRecord
from .survey import CoreCompetency, SurveySubmission, SurveyCompetencyScore
from .checkpoint import Checkpoint

__all__ = [
    "Employee",
    "CoachingSession",
    "ActionItem",
    "SlackInstallation",
    "SlackConnection",
    "NudgeTemplate",
    "NudgeRecord",
    "CoreCompetency",
    "SurveySubmission",
    "SurveyCompetencyScore",
    "Checkpoint",
]
