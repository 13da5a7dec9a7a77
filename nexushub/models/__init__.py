"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from nexushub.models.user import User  # noqa: F401
from nexushub.models.team import Team, TeamJoinRequest, TeamMember  # noqa: F401
from nexushub.models.project import Project, ProjectMember  # noqa: F401
from nexushub.models.task import Task, task_assignees  # noqa: F401
from nexushub.models.comment import TaskComment  # noqa: F401
from nexushub.models.activity import Activity  # noqa: F401
from nexushub.models.post import Post, PostComment, PostLike, PostShare  # noqa: F401
from nexushub.models.chat import Chat, ChatParticipant, Message, MessageReceipt  # noqa: F401
