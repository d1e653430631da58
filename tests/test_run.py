import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.errors import AllEndpointsExhaustedError
from run import parse_args, run_async


def test_exactly_one_command_is_required():
    with pytest.raises(SystemExit):
        parse_args([])
    with pytest.raises(SystemExit):
        parse_args(["--stakes", "--reserve"])


def test_account_command_and_config_path():
    args = parse_args(["--account", "alice", "--config", "cfg.yaml"])

    assert args.account == "alice"
    assert args.config == Path("cfg.yaml")
    assert not args.stakes


def test_fetch_errors_become_exit_status(capsys: pytest.CaptureFixture[str]):
    async def _failing() -> None:
        raise AllEndpointsExhaustedError([])

    assert run_async(_failing) == 1
    assert "Error loading data" in capsys.readouterr().err


def test_successful_command_exits_zero():
    async def _ok() -> None:
        return None

    assert run_async(_ok) == 0


def test_vote_takes_member_names():
    args = parse_args(["--vote", "alice", "bob"])

    assert args.vote == ["alice", "bob"]
    with pytest.raises(SystemExit):
        parse_args(["--vote"])
