from keelorm.utils.redaction import REDACTED_VALUE, is_sensitive, redact_params


def test_sensitive_names_are_detected():
    assert is_sensitive("DB_PASSWORD")
    assert is_sensitive("api_key")
    assert not is_sensitive("username")


def test_redact_params_masks_sensitive_values_and_keys():
    assert redact_params(None) == []
    assert redact_params(("alice", "token=abc")) == ["alice", REDACTED_VALUE]
    assert redact_params({"password": "hunter2", "team_name": "Team A"}) == {
        "password": REDACTED_VALUE,
        "team_name": "Team A",
    }
