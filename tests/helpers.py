"""Shared test helpers: a controllable clock, record builders and gates."""

from entrant_sync.core.types import InputRecord


class FakeClock:
    """Manually advanced monotonic clock; `sleep` advances it instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedGate:
    """Confirmation gate answering from a script and recording the questions."""

    def __init__(self, *answers: bool, default: bool = True) -> None:
        self._answers = list(answers)
        self._default = default
        self.questions: list[str] = []

    def confirm(self, message: str) -> bool:
        self.questions.append(message)
        return self._answers.pop(0) if self._answers else self._default


def make_record(email: str, size: str = "9", **fields: str) -> InputRecord:
    values = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address1": "1 Main St",
        "city": "Phoenix",
        "province": "AZ",
        "zip": "85001",
        "style": "Low",
    }
    values.update(fields)
    return InputRecord(identifier=email, variant_selector=size, **values)
