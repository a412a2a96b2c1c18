from __future__ import annotations

import pytest

from fuzzrun.exceptions import EXIT_INTERRUPTED, EXIT_SESSION_START_FAILURE
from fuzzrun.results import RunResult


@pytest.mark.parametrize(
    "exit_code, signaled, expected",
    [
        (0, False, 0),
        (1, False, 1),
        (143, True, 143),
        (0, True, EXIT_INTERRUPTED),
        (-1, True, EXIT_INTERRUPTED),
        (-1, False, EXIT_SESSION_START_FAILURE),
        (256 + 7, False, 7),
    ],
)
def test_process_exit_code(exit_code: int, signaled: bool, expected: int) -> None:
    result = RunResult(exit_code=exit_code, signaled=signaled, duration_ms=5)

    assert result.process_exit_code == expected


def test_success_requires_clean_unsignaled_exit() -> None:
    assert RunResult(exit_code=0, signaled=False, duration_ms=1).success
    assert not RunResult(exit_code=0, signaled=True, duration_ms=1).success
    assert not RunResult(exit_code=2, signaled=False, duration_ms=1).success
