"""
Authorization evaluator for teams, projects, tasks, feed posts and chats.

Every check is a pure function over immutable membership snapshots and
returns a Decision. Services build the snapshots from ORM objects with
team_access / project_access / task_access, ask for a decision and call
Decision.enforce() to turn a denial into a 403.

Role resolution:
    team     owner (Team.owner_id) > stored member role (admin > member)
    project  roster entry; parent-team membership grants viewing only
    task     project role, assignee, or creator depending on the action
    post     author; everyone else sees non-private posts
    chat     participant; group changes need the group admin
"""
from __future__ import annotations

import enum
import uuid
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nexushub.core.exceptions import ForbiddenException

if TYPE_CHECKING:
    from nexushub.models.chat import Chat
    from nexushub.models.post import Post
    from nexushub.models.project import Project
    from nexushub.models.task import Task
    from nexushub.models.team import Team


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


MANAGER_ROLES = frozenset({Role.OWNER, Role.ADMIN})


class JoinOutcome(str, enum.Enum):
    MEMBERSHIP = "membership"
    REQUEST = "request"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self) -> None:
        """Raise ForbiddenException carrying the reason when denied."""
        if not self.allowed:
            raise ForbiddenException(self.reason or "Not authorized")


ALLOW = Decision(True)


# ── Snapshots ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TeamAccess:
    owner_id: uuid.UUID
    members: Mapping[uuid.UUID, Role] = field(default_factory=dict)
    is_public: bool = True


@dataclass(frozen=True)
class ProjectAccess:
    created_by_id: uuid.UUID | None
    roster: Mapping[uuid.UUID, Role] = field(default_factory=dict)
    parent_team: TeamAccess | None = None


@dataclass(frozen=True)
class TaskAccess:
    created_by_id: uuid.UUID | None
    project: ProjectAccess
    assignee_ids: frozenset[uuid.UUID] = frozenset()


def team_access(team: Team) -> TeamAccess:
    return TeamAccess(
        owner_id=team.owner_id,
        members={m.user_id: Role(m.role) for m in team.members},
        is_public=team.is_public,
    )


def project_access(project: Project) -> ProjectAccess:
    return ProjectAccess(
        created_by_id=project.created_by_id,
        roster={m.user_id: Role(m.role) for m in project.members},
        parent_team=team_access(project.team) if project.team is not None else None,
    )


def task_access(task: Task) -> TaskAccess:
    return TaskAccess(
        created_by_id=task.created_by_id,
        project=project_access(task.project),
        assignee_ids=frozenset(u.id for u in task.assignees),
    )


# ── Role resolution ───────────────────────────────────────────────────────────

def team_role(actor_id: uuid.UUID, team: TeamAccess) -> Role | None:
    if actor_id == team.owner_id:
        return Role.OWNER
    return team.members.get(actor_id)


def project_role(actor_id: uuid.UUID, project: ProjectAccess) -> Role | None:
    return project.roster.get(actor_id)


def has_parent_team_access(actor_id: uuid.UUID, project: ProjectAccess) -> bool:
    if project.parent_team is None:
        return False
    return team_role(actor_id, project.parent_team) is not None


def _describe(role: Role | None) -> str:
    return role.value if role is not None else "no role"


def _require(
    held: Role | None,
    allowed: Collection[Role],
    scope: str,
) -> Decision:
    if held is not None and held in allowed:
        return ALLOW
    wanted = " or ".join(r.value for r in Role if r in allowed)
    return Decision(False, f"Requires {scope} role {wanted}, you hold {_describe(held)}")


# ── Projects ──────────────────────────────────────────────────────────────────

def can_view_project(actor_id: uuid.UUID, project: ProjectAccess) -> Decision:
    if actor_id == project.created_by_id:
        return ALLOW
    if project_role(actor_id, project) is not None:
        return ALLOW
    if has_parent_team_access(actor_id, project):
        return ALLOW
    return Decision(False, "You are not a member of this project or its team")


def can_update_project(actor_id: uuid.UUID, project: ProjectAccess) -> Decision:
    return _require(project_role(actor_id, project), MANAGER_ROLES, "project")


def can_delete_project(actor_id: uuid.UUID, project: ProjectAccess) -> Decision:
    return _require(project_role(actor_id, project), {Role.OWNER}, "project")


def can_manage_project_members(actor_id: uuid.UUID, project: ProjectAccess) -> Decision:
    return _require(project_role(actor_id, project), MANAGER_ROLES, "project")


# ── Tasks ─────────────────────────────────────────────────────────────────────

def can_create_task(actor_id: uuid.UUID, project: ProjectAccess) -> Decision:
    return _require(project_role(actor_id, project), set(Role), "project")


def can_assign_task(
    actor_id: uuid.UUID,
    project: ProjectAccess,
    assignee_ids: Iterable[uuid.UUID],
) -> Decision:
    role = project_role(actor_id, project)
    if role in MANAGER_ROLES:
        return ALLOW
    if role is Role.MEMBER and set(assignee_ids) <= {actor_id}:
        return ALLOW
    if role is Role.MEMBER:
        return Decision(False, "Members may only assign tasks to themselves")
    return _require(role, MANAGER_ROLES, "project")


def can_update_task(
    actor_id: uuid.UUID,
    task: TaskAccess,
    fields: Iterable[str],
) -> Decision:
    role = project_role(actor_id, task.project)
    if role in MANAGER_ROLES:
        return ALLOW
    status_only = set(fields) == {"status"}
    if status_only and (role is not None or actor_id in task.assignee_ids):
        return ALLOW
    if role is None and actor_id not in task.assignee_ids:
        return _require(role, MANAGER_ROLES, "project")
    return Decision(
        False,
        f"Requires project role owner or admin to change fields other than "
        f"status, you hold {_describe(role)}",
    )


def can_delete_task(actor_id: uuid.UUID, task: TaskAccess) -> Decision:
    if actor_id == task.created_by_id:
        return ALLOW
    return _require(project_role(actor_id, task.project), MANAGER_ROLES, "project")


def can_comment_on_task(actor_id: uuid.UUID, task: TaskAccess) -> Decision:
    return can_view_project(actor_id, task.project)


# ── Teams ─────────────────────────────────────────────────────────────────────

def can_create_team(actor_id: uuid.UUID) -> Decision:
    return ALLOW


def can_view_team(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    if team.is_public or team_role(actor_id, team) is not None:
        return ALLOW
    return Decision(False, "This team is private")


def can_update_team(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    return _require(team_role(actor_id, team), {Role.OWNER}, "team")


def can_add_team_member(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    return _require(team_role(actor_id, team), MANAGER_ROLES, "team")


def can_change_member_role(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    return _require(team_role(actor_id, team), {Role.OWNER}, "team")


def can_delete_team(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    return _require(team_role(actor_id, team), {Role.OWNER}, "team")


def can_remove_team_member(
    actor_id: uuid.UUID,
    team: TeamAccess,
    target_id: uuid.UUID,
) -> Decision:
    if target_id == team.owner_id:
        if actor_id == team.owner_id:
            return ALLOW
        return Decision(False, "The team owner can only be removed by themselves")
    if actor_id == target_id:
        return ALLOW
    return _require(team_role(actor_id, team), MANAGER_ROLES, "team")


def can_review_join_requests(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    return _require(team_role(actor_id, team), MANAGER_ROLES, "team")


def can_create_team_project(actor_id: uuid.UUID, team: TeamAccess) -> Decision:
    return _require(team_role(actor_id, team), MANAGER_ROLES, "team")


def join_outcome(team: TeamAccess) -> JoinOutcome:
    return JoinOutcome.MEMBERSHIP if team.is_public else JoinOutcome.REQUEST


# ── Feed ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PostAccess:
    author_id: uuid.UUID
    visibility: str = "public"


def post_access(post: Post) -> PostAccess:
    return PostAccess(author_id=post.author_id, visibility=post.visibility)


def can_view_post(actor_id: uuid.UUID, post: PostAccess) -> Decision:
    if actor_id == post.author_id or post.visibility != "private":
        return ALLOW
    return Decision(False, "This post is private")


def can_delete_post(actor_id: uuid.UUID, post: PostAccess) -> Decision:
    if actor_id == post.author_id:
        return ALLOW
    return Decision(False, "Only the author can delete this post")


# ── Chats ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ChatAccess:
    participant_ids: frozenset[uuid.UUID]
    is_group: bool = False
    admin_id: uuid.UUID | None = None


def chat_access(chat: Chat) -> ChatAccess:
    return ChatAccess(
        participant_ids=frozenset(p.user_id for p in chat.participants),
        is_group=chat.is_group,
        admin_id=chat.group_admin_id,
    )


def can_read_chat(actor_id: uuid.UUID, chat: ChatAccess) -> Decision:
    if actor_id in chat.participant_ids:
        return ALLOW
    return Decision(False, "You are not a participant of this chat")


def can_manage_group_chat(actor_id: uuid.UUID, chat: ChatAccess) -> Decision:
    if not chat.is_group:
        return Decision(False, "Only group chats can be changed")
    if actor_id == chat.admin_id:
        return ALLOW
    return Decision(False, "Only the group admin can change this chat")


def can_remove_chat_participant(
    actor_id: uuid.UUID,
    chat: ChatAccess,
    target_id: uuid.UUID,
) -> Decision:
    if chat.is_group and actor_id == target_id and actor_id in chat.participant_ids:
        return ALLOW
    return can_manage_group_chat(actor_id, chat)
