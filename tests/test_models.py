import pytest

from fakes import ManualClock

from loginwatch.agent.debounce import DebounceGuard
from loginwatch.agent.models import CaptureBuffer, VerifiedEvent, origin_of
from loginwatch.constants import InputRole
from loginwatch.hashing import digest_password
from loginwatch.main import parse_args


@pytest.mark.parametrize(
    "url,origin",
    [
        ("https://example.com/login?next=/", "https://example.com:443"),
        ("http://example.com/", "http://example.com:80"),
        ("http://localhost:3000/auth", "http://localhost:3000"),
        ("https://EXAMPLE.com", "https://example.com:443"),
        ("about:blank", ""),
        ("", ""),
    ],
)
def test_origin_of(url, origin):
    assert origin_of(url) == origin


def test_digest_password():
    digest = digest_password("password")
    assert digest.sha1 == "5BAA61E4C9B93F3F0682250B6CF8331B7EE68FD8"
    assert digest.breach_prefix == "5BAA6"
    assert len(digest.sha512) == 128
    assert digest.sha512 == digest.sha512.lower()


def test_capture_buffer_tracks_latest_value_per_role():
    buffer = CaptureBuffer()
    buffer.update(InputRole.USERNAME, "alice")
    assert not buffer.has_credentials()

    buffer.update(InputRole.PASSWORD, "one")
    buffer.update(InputRole.PASSWORD, "two")
    buffer.update(InputRole.UNCLASSIFIED, "ignored")
    assert buffer.has_credentials()
    assert buffer.password == "two"

    buffer.clear()
    assert buffer.username is None and buffer.password is None


def test_verified_event_wire_format():
    event = VerifiedEvent.capture("https://example.com:443", "alice", "pw", mfa_present=False, mfa_type="TOTP")
    data = event.to_dict()

    assert data["passwordHash"] == digest_password("pw").sha512
    assert data["mfaType"] is None
    assert VerifiedEvent.from_dict(data) == event


def test_verified_event_requires_core_fields():
    with pytest.raises(ValueError, match="passwordHash"):
        VerifiedEvent.from_dict({"origin": "https://example.com:443", "username": "alice"})
    with pytest.raises(ValueError):
        VerifiedEvent.from_dict("LOGIN_DETECTED")


def test_debounce_window():
    clock = ManualClock()
    guard = DebounceGuard(clock, 1.0)
    guard.record("https://example.com:443", "alice")

    assert guard.is_recent("https://example.com:443", "alice")
    assert not guard.is_recent("https://example.com:443", "bob")
    assert not guard.is_recent("https://other.example:443", "alice")

    clock._now = 1.0
    assert not guard.is_recent("https://example.com:443", "alice")

    guard.record("https://example.com:443", "bob")
    assert len(guard) == 1


def test_parse_args():
    args = parse_args(["--log-level", "DEBUG", "watch", "https://example.com", "--coordinator", "http://127.0.0.1:9000"])
    assert args.command == "watch"
    assert args.url == "https://example.com"
    assert args.coordinator == "http://127.0.0.1:9000"
    assert args.log_level == "DEBUG"

    assert parse_args(["coordinator"]).command == "coordinator"
