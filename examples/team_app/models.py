"""
Team and member mappings: one raw-key association and one lazy reference.
"""

from __future__ import annotations

from keelorm.core import AutoField, IdReference, ManyToOne, Model, StringField


class Team(Model):
    class Meta:
        table = "team"

    team_id = AutoField()
    name = StringField(nullable=False, max_length=100)


class IdMember(Model):
    """
    Member that stores only its team's key; the team is looked up by hand.
    """

    class Meta:
        table = "id_member"

    member_id = AutoField()
    username = StringField(nullable=False, max_length=100)
    team_id = IdReference(Team)


class Member(Model):
    """
    Member navigating to its team through a lazily loaded reference.
    """

    class Meta:
        table = "member"

    member_id = AutoField()
    username = StringField(nullable=False, max_length=100)
    team = ManyToOne(Team)
