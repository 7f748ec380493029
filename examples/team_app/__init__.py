"""
Team sample application contrasting raw-key and lazy associations.
"""

from .demo import (
    MemberWithTeamInfo,
    bootstrap_session,
    member_with_team_info,
    members_of_team,
    reassign,
    run_demo,
    seed_sample_data,
    team_roster,
)
from .models import IdMember, Member, Team

__all__ = [
    "IdMember",
    "Member",
    "MemberWithTeamInfo",
    "Team",
    "bootstrap_session",
    "member_with_team_info",
    "members_of_team",
    "reassign",
    "run_demo",
    "seed_sample_data",
    "team_roster",
]
