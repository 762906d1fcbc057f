# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Permission matrix. Pure functions over roles; nothing here touches storage.

Two tiers throughout: owner and co-admin may manage everything, the remaining
roles may do nothing or only what is scoped to their assigned teams.
"""

from collections.abc import Iterable

from tourneygate_server.core.roles import GlobalRole, TournamentRole

_MANAGERS = (TournamentRole.OWNER, TournamentRole.CO_ADMIN)


# Tournament management

def can_manage_tournament(role: TournamentRole) -> bool:
    """Settings, schedule and other tournament-wide configuration."""
    return role in _MANAGERS


def can_delete_tournament(role: TournamentRole) -> bool:
    return role == TournamentRole.OWNER


def can_create_invitations(role: TournamentRole) -> bool:
    return role in _MANAGERS


# Results and schedule

def can_edit_results(
    role: TournamentRole,
    actor_team_ids: Iterable[str],
    match_team_ids: Iterable[str],
) -> bool:
    """Whether a score may be entered for a match.

    Owner, co-admin and collaborator may edit every match. A trainer may edit
    only matches that involve at least one of their assigned teams.
    """
    if role in _MANAGERS or role == TournamentRole.COLLABORATOR:
        return True
    if role == TournamentRole.TRAINER:
        own = set(actor_team_ids)
        return any(team_id in own for team_id in match_team_ids)
    return False


def can_edit_schedule(role: TournamentRole) -> bool:
    return role in _MANAGERS


# Teams

def can_edit_all_teams(role: TournamentRole) -> bool:
    return role in _MANAGERS


def can_edit_team_roster(
    role: TournamentRole,
    actor_team_ids: Iterable[str],
    team_id: str,
) -> bool:
    """Players and shirt numbers of one team. Trainers only for their own teams."""
    if role in _MANAGERS:
        return True
    if role == TournamentRole.TRAINER:
        return team_id in set(actor_team_ids)
    return False


def can_edit_team_metadata(role: TournamentRole) -> bool:
    """Team name and logo. Not trainers."""
    return role in _MANAGERS


# Members

def can_change_role(actor_role: TournamentRole, target_role: TournamentRole) -> bool:
    """Whether the actor may act on a member holding target_role at all.

    The owner may act on anyone but the (single) owner. A co-admin may not act
    laterally or upward, so neither on co-admins nor on the owner.
    """
    if actor_role == TournamentRole.OWNER:
        return target_role != TournamentRole.OWNER
    if actor_role == TournamentRole.CO_ADMIN:
        return target_role not in _MANAGERS
    return False


def can_set_role_to(
    actor_role: TournamentRole,
    target_current_role: TournamentRole,
    new_role: TournamentRole,
) -> bool:
    if not can_change_role(actor_role, target_current_role):
        return False
    # ownership only moves through transfer_ownership
    if new_role == TournamentRole.OWNER:
        return False
    if new_role == TournamentRole.CO_ADMIN and actor_role != TournamentRole.OWNER:
        return False
    return True


def can_remove_member(actor_role: TournamentRole, target_role: TournamentRole) -> bool:
    return can_change_role(actor_role, target_role)


def can_transfer_ownership(role: TournamentRole) -> bool:
    return role == TournamentRole.OWNER


def get_assignable_roles(actor_role: TournamentRole) -> list[TournamentRole]:
    """Roles the actor may hand out, highest first."""
    if actor_role == TournamentRole.OWNER:
        return [
            TournamentRole.CO_ADMIN,
            TournamentRole.TRAINER,
            TournamentRole.COLLABORATOR,
            TournamentRole.VIEWER,
        ]
    if actor_role == TournamentRole.CO_ADMIN:
        return [TournamentRole.TRAINER, TournamentRole.COLLABORATOR, TournamentRole.VIEWER]
    return []


# Visibility

def can_view_tournament(role: TournamentRole) -> bool:
    return True


def can_view_schedule(role: TournamentRole) -> bool:
    return True


def can_view_standings(role: TournamentRole) -> bool:
    return True


def can_view_members(role: TournamentRole) -> bool:
    return role in _MANAGERS


def can_view_invitations(role: TournamentRole) -> bool:
    return role in _MANAGERS


# Global

def can_create_tournament(global_role: GlobalRole) -> bool:
    return global_role in (GlobalRole.USER, GlobalRole.ADMIN)


def is_global_admin(global_role: GlobalRole) -> bool:
    return global_role == GlobalRole.ADMIN


def is_guest(global_role: GlobalRole) -> bool:
    return global_role == GlobalRole.GUEST
