from slot_signup.models import Signup, SignupStatus, Slot, parse_status, status_value


def test_status_value_stamps_terminal_states() -> None:
    assert status_value(SignupStatus.ACTIVE, "t") == "ACTIVE"
    assert status_value(SignupStatus.CANCELLED, "2030-01-01T10:00:00") == "CANCELLED:2030-01-01T10:00:00"


def test_parse_status() -> None:
    assert parse_status("") == SignupStatus.ACTIVE
    assert parse_status("ACTIVE") == SignupStatus.ACTIVE
    assert parse_status("CANCELLED:2030-01-01T10:00:00-05:00") == SignupStatus.CANCELLED
    assert parse_status("failed:x") == SignupStatus.FAILED


def test_slot_available_never_negative() -> None:
    assert Slot(id=1, date="d", label="l", capacity=3, taken=1).available == 2
    assert Slot(id=1, date="d", label="l", capacity=1, taken=4).available == 0


def test_signup_contact_prefers_phone() -> None:
    signup = Signup(
        id=1,
        timestamp="",
        date="",
        slot_label="",
        name="",
        email="a@b.co",
        phone="",
        category="",
        notes="",
        slot_id=1,
        status="CANCELLED:t",
        batch_id="",
    )
    assert signup.contact == "a@b.co"
    assert not signup.is_active
