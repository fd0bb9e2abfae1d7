"""pytest configuration file."""

import pytest, os, logging

# Must be set before any Qt/pygame import in the test session
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

pytest_plugins = [
    "pytest_asyncio",
]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (may take several seconds)"
    )
    config.addinivalue_line(
        "markers", "qt: marks tests that spin a Qt event loop"
    )


@pytest.fixture(autouse=True, scope="session")
def _silence_logs():
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    yield


class FakeClock:
    """Simulated wall clock in seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> float:
        self.t += seconds
        return self.t


class RecordingOutput:
    def __init__(self) -> None:
        self.cues = 0
        self.spoken: list[int] = []
        self.cancels = 0

    def play_cue(self) -> None:
        self.cues += 1

    def speak_number(self, number: int) -> None:
        self.spoken.append(number)

    def cancel(self) -> None:
        self.cancels += 1


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_output():
    return RecordingOutput()
