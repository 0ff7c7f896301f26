import pytest

from portfolio_chat.client.cooldown import ChatCooldown, format_cooldown_time


class FakeClock:
    def __init__(self, now_ms=1_000_000.0):
        self.now_ms = now_ms

    def __call__(self):
        return self.now_ms

    def advance(self, seconds):
        self.now_ms += seconds * 1000


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.parametrize(
    "errors, expected",
    [(0, 5), (1, 30), (2, 120), (3, 300), (4, 600), (9, 600)],
)
def test_cooldown_escalates_with_error_count(clock, errors, expected):
    cooldown = ChatCooldown(clock=clock)
    for _ in range(errors):
        cooldown.increment_error_count()
    cooldown.start_cooldown()

    assert cooldown.is_cooldown_active()
    assert cooldown.get_remaining_cooldown() == expected


def test_cooldown_expires(clock):
    cooldown = ChatCooldown(clock=clock)
    cooldown.start_cooldown()
    clock.advance(4.5)
    assert cooldown.is_cooldown_active()
    assert cooldown.get_remaining_cooldown() == 1

    clock.advance(0.5)
    assert not cooldown.is_cooldown_active()
    assert cooldown.get_cooldown_message() == ""


def test_reset_clears_everything(clock):
    cooldown = ChatCooldown(clock=clock)
    for _ in range(3):
        cooldown.increment_error_count()
    cooldown.start_cooldown()

    cooldown.reset_cooldown()

    assert not cooldown.is_cooldown_active()
    assert cooldown.get_remaining_cooldown() <= 0
    assert cooldown.error_count == 0


def test_cooldown_message(clock):
    cooldown = ChatCooldown(clock=clock)
    assert cooldown.get_cooldown_message() == ""

    cooldown.increment_error_count()
    cooldown.start_cooldown()
    assert cooldown.get_cooldown_message() == "You are on cooldown. Try again in 30 seconds."


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (1, "1 second"),
        (5, "5 seconds"),
        (60, "1 minute"),
        (90, "1 minute"),
        (120, "2 minutes"),
        (600, "10 minutes"),
    ],
)
def test_format_cooldown_time(seconds, expected):
    assert format_cooldown_time(seconds) == expected
