import pytest

from examples.team_app.models import IdMember, Team
from keelorm.core import EntityKey
from keelorm.errors import IdentityConflictError
from keelorm.persistence import IdentityMap


def test_add_and_get_by_model_and_key():
    identity_map = IdentityMap()
    team = Team(team_id=1, name="A")
    identity_map.add(team)
    assert identity_map.get(Team, EntityKey.of(team_id=1)) is team
    assert team in identity_map
    assert len(identity_map) == 1


def test_same_key_value_under_other_model_is_a_distinct_slot():
    identity_map = IdentityMap()
    identity_map.add(Team(team_id=1, name="A"))
    assert identity_map.get(IdMember, EntityKey.of(member_id=1)) is None


def test_incomplete_keys_are_not_registered():
    identity_map = IdentityMap()
    identity_map.add(Team(name="unsaved"))
    assert len(identity_map) == 0


def test_second_instance_for_occupied_slot_raises():
    identity_map = IdentityMap()
    identity_map.add(Team(team_id=1, name="A"))
    with pytest.raises(IdentityConflictError):
        identity_map.add(Team(team_id=1, name="B"))


def test_remove_only_evicts_the_registered_instance():
    identity_map = IdentityMap()
    team = Team(team_id=1, name="A")
    identity_map.add(team)
    identity_map.remove(Team(team_id=1, name="impostor"))
    assert identity_map.get(Team, team.identity) is team
    identity_map.remove(team)
    assert identity_map.values() == []
