"""Tests for HookManager."""

import asyncio as _asyncio
import collections.abc as _abc

import pytest as _pytest

import tscwatch.config as config
import tscwatch.hooks.events as events
import tscwatch.hooks.manager as manager

SLEEP = "import time; time.sleep(60)"
IGNORE_TERM = (
    "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(60)"
)


class TestHookManagerBasics:
    """Tests that need no processes."""

    @_pytest.fixture
    def empty_manager(self) -> manager.HookManager:
        """Create manager with no hooks."""
        return manager.HookManager.empty()

    def test_empty_manager_has_no_hooks(self, empty_manager: manager.HookManager) -> None:
        """Empty manager reports no configured hooks."""
        for kind in events.HookKind:
            assert not empty_manager.is_configured(kind)

    @_pytest.mark.asyncio
    async def test_trigger_unconfigured_is_noop(self, empty_manager: manager.HookManager) -> None:
        """Triggering a hook with no command schedules nothing."""
        assert empty_manager.trigger(events.HookKind.SUCCESS) is None
        assert empty_manager.pending == 0

    @_pytest.mark.asyncio
    async def test_unknown_token_is_ignored(
        self,
        empty_manager: manager.HookManager,
        caplog: _pytest.LogCaptureFixture,
    ) -> None:
        """Unknown manual tokens log a warning and do nothing."""
        assert empty_manager.manual_retrigger_token("run-on-lunch-command") is None
        assert "Unknown message 'run-on-lunch-command'" in caplog.text

    def test_from_settings(self) -> None:
        """Commands and timeout come from settings."""
        settings = config.Settings(on_success="echo ok", kill_timeout=1.5)
        mgr = manager.HookManager.from_settings(settings)

        assert mgr.is_configured(events.HookKind.SUCCESS)
        assert not mgr.is_configured(events.HookKind.FAILURE)
        assert mgr.get_slot(events.HookKind.SUCCESS).command == "echo ok"


@_pytest.mark.slow
class TestHookManagerProcesses:
    """Tests that spawn real hook processes."""

    @_pytest.mark.asyncio
    async def test_rapid_triggers_run_in_order(
        self,
        python_command: _abc.Callable[[str], str],
    ) -> None:
        """N triggers produce N serialized invocations and one survivor."""
        mgr = manager.HookManager({events.HookKind.SUCCESS: python_command(SLEEP)})

        for _ in range(4):
            mgr.trigger(events.HookKind.SUCCESS)
        assert mgr.pending == 4

        await mgr.drain()
        assert mgr.pending == 0
        assert mgr.alive() == [events.HookKind.SUCCESS]

        await mgr.kill_all(include_first_success=True)
        assert mgr.alive() == []

    @_pytest.mark.asyncio
    async def test_manual_token_restarts_hook(
        self,
        python_command: _abc.Callable[[str], str],
    ) -> None:
        """A manual token restarts the matching hook."""
        mgr = manager.HookManager({events.HookKind.FAILURE: python_command(SLEEP)})

        task = mgr.manual_retrigger_token("run-on-failure-command")
        assert task is not None
        assert await task is True
        assert mgr.alive() == [events.HookKind.FAILURE]

        await mgr.kill_all(include_first_success=False)
        assert mgr.alive() == []

    @_pytest.mark.asyncio
    async def test_kill_all_can_spare_first_success(
        self,
        python_command: _abc.Callable[[str], str],
    ) -> None:
        """kill_all leaves the first-success hook unless asked."""
        mgr = manager.HookManager(
            {
                events.HookKind.FIRST_SUCCESS: python_command(SLEEP),
                events.HookKind.SUCCESS: python_command(SLEEP),
            }
        )
        await mgr.restart(events.HookKind.FIRST_SUCCESS)
        await mgr.restart(events.HookKind.SUCCESS)

        await mgr.kill_all(include_first_success=False)
        assert mgr.alive() == [events.HookKind.FIRST_SUCCESS]

        await mgr.kill_all(include_first_success=True)
        assert mgr.alive() == []

    @_pytest.mark.asyncio
    async def test_close_stops_new_invocations(
        self,
        python_command: _abc.Callable[[str], str],
    ) -> None:
        """After close(), triggers are refused and queued restarts do not spawn."""
        mgr = manager.HookManager({events.HookKind.SUCCESS: python_command(SLEEP)})

        mgr.trigger(events.HookKind.SUCCESS)
        mgr.close()
        assert mgr.trigger(events.HookKind.SUCCESS) is None

        await mgr.drain()
        await mgr.kill_all(include_first_success=True)
        assert mgr.alive() == []

    @_pytest.mark.asyncio
    async def test_close_during_kill_phase_leaves_nothing_running(
        self,
        python_command: _abc.Callable[[str], str],
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        """Closing while a restart is still killing the old invocation spawns nothing new."""
        mgr = manager.HookManager(
            {events.HookKind.SUCCESS: python_command(IGNORE_TERM)},
            kill_timeout=0.5,
        )
        hook_slot = mgr.get_slot(events.HookKind.SUCCESS)
        spawned: list[_asyncio.subprocess.Process] = []
        real_spawn = hook_slot._spawn

        async def recording_spawn(command: str) -> _asyncio.subprocess.Process | None:
            process = await real_spawn(command)
            if process is not None:
                spawned.append(process)
            return process

        monkeypatch.setattr(hook_slot, "_spawn", recording_spawn)

        assert await mgr.restart(events.HookKind.SUCCESS)
        # Let the hook install its SIGTERM handler
        await _asyncio.sleep(0.5)
        mgr.trigger(events.HookKind.SUCCESS)
        await _asyncio.sleep(0.1)

        mgr.close()
        await _asyncio.wait_for(mgr.kill_all(include_first_success=True), timeout=10)
        await mgr.drain()

        assert mgr.alive() == []
        assert len(spawned) == 1
        assert all(process.returncode is not None for process in spawned)

    @_pytest.mark.asyncio
    async def test_different_hooks_run_independently(
        self,
        python_command: _abc.Callable[[str], str],
    ) -> None:
        """Restarting one hook leaves the others running."""
        mgr = manager.HookManager(
            {
                events.HookKind.COMPILATION_STARTED: python_command(SLEEP),
                events.HookKind.COMPILATION_COMPLETE: python_command(SLEEP),
            }
        )
        await mgr.restart(events.HookKind.COMPILATION_STARTED)
        started_pid = mgr.get_slot(events.HookKind.COMPILATION_STARTED).pid

        await mgr.restart(events.HookKind.COMPILATION_COMPLETE)
        assert mgr.get_slot(events.HookKind.COMPILATION_STARTED).pid == started_pid
        assert set(mgr.alive()) == {
            events.HookKind.COMPILATION_STARTED,
            events.HookKind.COMPILATION_COMPLETE,
        }

        await mgr.kill_all(include_first_success=True)
