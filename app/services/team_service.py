"""
CigroTrack
Team Service — teams, membership, invitations and the activity log.

Rules:
  - Every read requires team membership (non-members get 404).
  - OWNER/ADMIN manage invites and the team name; only the OWNER deletes
    the team or changes roles.
  - A team always keeps at least one OWNER: ownership moves by promoting
    another member to OWNER, which demotes the acting owner to ADMIN.
  - Activity rows are appended in the same transaction as the change
    they describe.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import func, select, update

from app.core.exceptions import ConflictError, NotFoundError, PermissionDenied, ValidationError
from app.models import db, iso, utcnow
from app.models.team import (
    INVITE_ACCEPTED,
    INVITE_EXPIRED,
    INVITE_PENDING,
    ROLE_ADMIN,
    ROLE_MEMBER,
    ROLE_OWNER,
    TEAM_ROLES,
    Team,
    TeamActivity,
    TeamInvite,
    TeamMember,
)
from app.models.user import User
from app.services.auth_service import normalize_email
from app.services.email_service import EmailService
from app.services.notification import NotificationService
from app.services.permission_service import (
    get_membership,
    require_team_member,
    require_team_role,
)
from app.utils.helpers import as_utc, commit, require_text

logger = logging.getLogger(__name__)

MAX_TEAM_NAME = 50
INVITE_EXPIRY = timedelta(days=7)
DEFAULT_ACTIVITY_LIMIT = 20
MANAGERS = (ROLE_OWNER, ROLE_ADMIN)
# Ownership only moves through update_member_role
INVITABLE_ROLES = (ROLE_ADMIN, ROLE_MEMBER)


def log_activity(team_id, user_id, action, target_type, target_id=None,
                 target_name=None, metadata=None) -> TeamActivity:
    """Append an activity row to the session (caller commits)."""
    activity = TeamActivity(
        team_id=team_id,
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        metadata_=metadata,
    )
    db.session.add(activity)
    return activity


def _team_dict(team: Team, role: str | None = None) -> dict:
    d = team.to_dict()
    d["member_count"] = team.members.count()
    if role is not None:
        d["my_role"] = role
    return d


# ── Teams ─────────────────────────────────────────────────────────────────────


def create_team(name, owner: User) -> dict:
    """Create a team and its OWNER membership in one transaction."""
    name = require_text(name, "Team name", MAX_TEAM_NAME)
    team = Team(name=name, owner_id=owner.id)
    db.session.add(team)
    db.session.flush()
    db.session.add(TeamMember(team_id=team.id, user_id=owner.id, role=ROLE_OWNER))
    log_activity(team.id, owner.id, "created team", "team", team.id, team.name)
    commit()
    logger.info("Team created id=%s owner=%s", team.id, owner.id)
    return _team_dict(team, ROLE_OWNER)


def get_teams(user: User) -> list[dict]:
    rows = db.session.execute(
        select(Team, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user.id, Team.not_deleted())
        .order_by(Team.created_at.desc())
    ).all()
    return [_team_dict(team, role) for team, role in rows]


def get_team(team_id, user: User) -> dict:
    team, member = require_team_member(team_id, user.id)
    return _team_dict(team, member.role)


def update_team(team_id, name, user: User) -> dict:
    team, member = require_team_role(team_id, user.id, MANAGERS, "Insufficient permissions")
    team.name = require_text(name, "Team name", MAX_TEAM_NAME)
    log_activity(team.id, user.id, f'updated team name to "{team.name}"', "team",
                 team.id, team.name)
    commit()
    return _team_dict(team, member.role)


def delete_team(team_id, user: User) -> None:
    team, _ = require_team_role(team_id, user.id, (ROLE_OWNER,), "Only team owner can delete team")
    team.soft_delete()
    log_activity(team.id, user.id, "deleted team", "team", team.id, team.name)
    commit()
    logger.info("Team soft-deleted id=%s by=%s", team.id, user.id)


# ── Invitations ───────────────────────────────────────────────────────────────


def _send_invite_notices(invite: TeamInvite, team: Team, inviter: User, renewed=False) -> None:
    """In-app notification (if the invitee has an account) plus invite email."""
    invitee = db.session.execute(
        select(User).where(func.lower(User.email) == invite.email, User.not_deleted())
    ).scalar_one_or_none()
    if invitee is not None:
        message = (f"Your invitation to join {team.name} has been renewed."
                   if renewed else f"You've been invited as {invite.role}")
        NotificationService.notify(
            user_id=invitee.id,
            type="team_invite",
            title=f"Invitation to {team.name}",
            message=message,
            link="/teams/invites",
            metadata={"team_id": team.id, "invite_id": invite.id},
        )

    frontend = EmailService.frontend_url()
    EmailService.send_from_template(
        to_email=invite.email,
        template_name="team_invite",
        context={
            "inviter_name": inviter.name,
            "team_name": team.name,
            "role": invite.role,
            "invite_link": f"{frontend}/teams/invites",
            "expires_at": iso(invite.expires_at),
        },
    )


def _get_invite(invite_id) -> TeamInvite:
    invite = db.session.get(TeamInvite, invite_id) if invite_id else None
    if invite is None or invite.team is None or invite.team.is_deleted:
        raise NotFoundError("Invite", invite_id)
    return invite


def invite_member(team_id, email, role, user: User) -> dict:
    team, _ = require_team_role(
        team_id, user.id, MANAGERS, "Insufficient permissions to invite members",
    )
    email = normalize_email(email)
    role = role or ROLE_MEMBER
    if role not in INVITABLE_ROLES:
        raise ValidationError("Role must be ADMIN or MEMBER", code="INVALID_ROLE")

    already_member = db.session.execute(
        select(TeamMember.id)
        .join(User, User.id == TeamMember.user_id)
        .where(TeamMember.team_id == team.id, func.lower(User.email) == email)
    ).first()
    if already_member:
        raise ConflictError("User is already a member of this team", code="ALREADY_MEMBER")

    # Past-due pending rows no longer block a fresh invite
    db.session.execute(
        update(TeamInvite)
        .where(
            TeamInvite.team_id == team.id,
            TeamInvite.email == email,
            TeamInvite.status == INVITE_PENDING,
            TeamInvite.expires_at <= utcnow(),
        )
        .values(status=INVITE_EXPIRED)
        .execution_options(synchronize_session=False)
    )

    pending = db.session.execute(
        select(TeamInvite.id).where(
            TeamInvite.team_id == team.id,
            TeamInvite.email == email,
            TeamInvite.status == INVITE_PENDING,
        )
    ).first()
    if pending:
        raise ConflictError("An invite is already pending for this email", code="INVITE_EXISTS")

    invite = TeamInvite(
        team_id=team.id,
        email=email,
        role=role,
        invited_by=user.id,
        expires_at=utcnow() + INVITE_EXPIRY,
        status=INVITE_PENDING,
    )
    db.session.add(invite)
    db.session.flush()
    log_activity(team.id, user.id, f"invited {email} as {role}", "member", invite.id, email)
    _send_invite_notices(invite, team, user)
    commit()
    logger.info("Invite created team=%s invite=%s", team.id, invite.id)
    return invite.to_dict()


def get_team_invites(team_id, user: User) -> list[dict]:
    require_team_member(team_id, user.id)
    invites = db.session.execute(
        select(TeamInvite)
        .where(TeamInvite.team_id == team_id, TeamInvite.status == INVITE_PENDING)
        .order_by(TeamInvite.created_at.desc())
    ).scalars().all()
    return [i.to_dict() for i in invites]


def get_user_pending_invites(user: User) -> list[dict]:
    """Pending, unexpired invites addressed to the user's email."""
    invites = db.session.execute(
        select(TeamInvite)
        .join(Team, Team.id == TeamInvite.team_id)
        .where(
            TeamInvite.email == user.email.lower(),
            TeamInvite.status == INVITE_PENDING,
            TeamInvite.expires_at > utcnow(),
            Team.not_deleted(),
        )
        .order_by(TeamInvite.created_at.desc())
    ).scalars().all()
    return [i.to_dict(include_team=True) for i in invites]


def resend_invite(invite_id, user: User) -> dict:
    invite = _get_invite(invite_id)
    if invite.status != INVITE_PENDING:
        raise ValidationError("Can only resend pending invites", code="INVITE_NOT_PENDING")
    team, _ = require_team_role(
        invite.team_id, user.id, MANAGERS, "Insufficient permissions to resend invite",
    )
    invite.expires_at = utcnow() + INVITE_EXPIRY
    log_activity(team.id, user.id, f"resent invite to {invite.email}", "member",
                 invite.id, invite.email)
    _send_invite_notices(invite, team, user, renewed=True)
    commit()
    return invite.to_dict()


def revoke_invite(team_id, invite_id, user: User) -> None:
    invite = _get_invite(invite_id)
    if invite.team_id != team_id:
        raise NotFoundError("Invite", invite_id)
    team, _ = require_team_role(
        team_id, user.id, MANAGERS, "Insufficient permissions to revoke invite",
    )
    if invite.status != INVITE_PENDING:
        raise ValidationError("Can only revoke pending invites", code="INVITE_NOT_PENDING")
    email = invite.email
    db.session.delete(invite)
    log_activity(team.id, user.id, f"revoked invite for {email}", "member", invite_id, email)
    commit()


def _check_invite_for_user(invite: TeamInvite, user: User) -> None:
    if invite.status != INVITE_PENDING:
        raise ValidationError("Invite already accepted or expired", code="INVITE_NOT_PENDING")
    if invite.email.lower() != user.email.lower():
        raise PermissionDenied("Invite email does not match user email")


def accept_invite(invite_id, user: User) -> dict:
    invite = _get_invite(invite_id)
    _check_invite_for_user(invite, user)
    if as_utc(invite.expires_at) <= utcnow():
        invite.status = INVITE_EXPIRED
        commit()
        raise ValidationError("Invite has expired", code="INVITE_EXPIRED")

    member = get_membership(invite.team_id, user.id)
    if member is None:
        member = TeamMember(team_id=invite.team_id, user_id=user.id, role=invite.role)
        db.session.add(member)
        db.session.flush()
        log_activity(invite.team_id, user.id, "joined team", "member", member.id, user.name)
    invite.status = INVITE_ACCEPTED
    commit()
    logger.info("Invite accepted invite=%s user=%s", invite.id, user.id)
    return member.to_dict()


def decline_invite(invite_id, user: User) -> None:
    invite = _get_invite(invite_id)
    _check_invite_for_user(invite, user)
    invite.status = INVITE_EXPIRED
    commit()


def expire_invites(now=None) -> int:
    """Mark every past-due pending invite expired. Returns the number changed."""
    now = now or utcnow()
    result = db.session.execute(
        update(TeamInvite)
        .where(TeamInvite.status == INVITE_PENDING, TeamInvite.expires_at <= now)
        .values(status=INVITE_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    commit()
    logger.info("Expired %d pending invites", result.rowcount)
    return result.rowcount


# ── Members ───────────────────────────────────────────────────────────────────


def get_members(team_id, user: User) -> list[dict]:
    require_team_member(team_id, user.id)
    members = db.session.execute(
        select(TeamMember)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.joined_at.desc())
    ).scalars().all()
    return [m.to_dict() for m in members]


def _get_member(team_id, member_id) -> TeamMember:
    member = db.session.get(TeamMember, member_id) if member_id else None
    if member is None or member.team_id != team_id:
        raise NotFoundError("Member", member_id, code="MEMBER_NOT_FOUND")
    return member


def remove_member(team_id, member_id, actor: User) -> None:
    """Kick a member (OWNER/ADMIN) or leave (self). The OWNER can never be removed."""
    _, actor_member = require_team_member(team_id, actor.id)
    member = _get_member(team_id, member_id)
    is_self = member.user_id == actor.id
    if actor_member.role not in MANAGERS and not is_self:
        raise PermissionDenied("Insufficient permissions")
    if member.role == ROLE_OWNER:
        raise ValidationError("Cannot remove team owner", code="CANNOT_REMOVE_OWNER")

    name = member.user.name if member.user else None
    action = "left team" if is_self else f"removed {name} from team"
    db.session.delete(member)
    log_activity(team_id, actor.id, action, "member", member_id, name)
    commit()
    logger.info("Member removed team=%s member=%s by=%s", team_id, member_id, actor.id)


def leave_team(team_id, user: User) -> None:
    require_team_member(team_id, user.id)
    member = get_membership(team_id, user.id)
    remove_member(team_id, member.id, user)


def change_member_role(team_id, member_id, new_role, actor: User) -> dict:
    """
    Change a member's role.

    Promoting someone else to OWNER transfers ownership: the acting owner
    becomes ADMIN and ``teams.owner_id`` moves. The last OWNER can never
    be demoted, and OWNER → MEMBER is never allowed in one step.
    """
    if new_role not in TEAM_ROLES:
        raise ValidationError("Valid role is required", code="INVALID_ROLE")
    team, actor_member = require_team_role(
        team_id, actor.id, (ROLE_OWNER,), "Only team owner can change roles",
    )
    target = _get_member(team_id, member_id)
    target_name = target.user.name if target.user else None

    if target.role == ROLE_OWNER and new_role == ROLE_MEMBER:
        raise ValidationError(
            "Cannot change OWNER to MEMBER. Transfer ownership to another member first.",
            code="INVALID_ROLE_CHANGE",
        )

    owner_count = db.session.execute(
        select(func.count(TeamMember.id)).where(
            TeamMember.team_id == team_id, TeamMember.role == ROLE_OWNER,
        )
    ).scalar_one()

    if new_role == ROLE_OWNER:
        if target.id != actor_member.id:
            actor_member.role = ROLE_ADMIN
            team.owner_id = target.user_id
            action = f"transferred ownership to {target_name}"
        else:
            action = f"changed {target_name}'s role to {new_role}"
    else:
        if target.role == ROLE_OWNER and owner_count <= 1:
            raise ValidationError(
                "Cannot change the only OWNER. Transfer ownership to another member first.",
                code="SOLE_OWNER",
            )
        action = f"changed {target_name}'s role to {new_role}"

    old_role = target.role
    target.role = new_role
    log_activity(team_id, actor.id, action, "member", target.id, target_name,
                 {"old_role": old_role, "new_role": new_role})
    if target.user_id != actor.id:
        NotificationService.notify(
            user_id=target.user_id,
            type="role_changed",
            title=f"Your role in {team.name} changed",
            message=f"You are now {new_role}",
            link=f"/teams/{team.id}",
            metadata={"team_id": team.id, "old_role": old_role, "new_role": new_role},
        )
    commit()
    logger.info("Role changed team=%s member=%s %s→%s", team_id, target.id, old_role, new_role)
    return target.to_dict()


# ── Activity ──────────────────────────────────────────────────────────────────


def get_activity(team_id, user: User, page=1, limit=DEFAULT_ACTIVITY_LIMIT) -> tuple[list[dict], int]:
    require_team_member(team_id, user.id)
    total = db.session.execute(
        select(func.count(TeamActivity.id)).where(TeamActivity.team_id == team_id)
    ).scalar_one()
    rows = db.session.execute(
        select(TeamActivity)
        .where(TeamActivity.team_id == team_id)
        .order_by(TeamActivity.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return [a.to_dict() for a in rows], total
