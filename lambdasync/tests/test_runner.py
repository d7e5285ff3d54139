import sys

import pytest

from lambdasync.core.errors import RunnerError
from lambdasync.core.runner import CommandRunner


@pytest.mark.asyncio
async def test_run_captures_output(tmp_path):
    messages = []
    runner = CommandRunner(printer=messages.append)

    result = await runner.run([sys.executable, "-c", "print('installed')"], cwd=tmp_path)

    assert result.returncode == 0
    assert result.stdout == "installed"
    assert messages[0].startswith("$ ")


@pytest.mark.asyncio
async def test_run_raises_with_output_tail():
    runner = CommandRunner(printer=lambda _: None)

    with pytest.raises(RunnerError, match="exit code 3") as excinfo:
        await runner.run([sys.executable, "-c", "import sys; print('boom'); sys.exit(3)"])

    assert "boom" in str(excinfo.value)


@pytest.mark.asyncio
async def test_run_without_check_returns_code():
    runner = CommandRunner(printer=lambda _: None)

    result = await runner.run([sys.executable, "-c", "raise SystemExit(2)"], check=False)

    assert result.returncode == 2


@pytest.mark.asyncio
async def test_missing_executable_is_runner_error(tmp_path):
    runner = CommandRunner(printer=lambda _: None)

    with pytest.raises(RunnerError, match="cannot start"):
        await runner.run([str(tmp_path / "no-such-npm"), "install"])


def test_require_command_reports_missing():
    with pytest.raises(RunnerError, match="required command not found"):
        CommandRunner().require_command("definitely-not-a-real-command-xyz")
