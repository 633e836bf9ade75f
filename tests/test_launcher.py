"""
Tests for the launch pipeline and the two launcher strategies.

Real children are spawned with the Python interpreter as the resolved
Claude Code executable, so arguments are ``-c <script> ...``.
"""

from __future__ import annotations

import json
import os
import sys
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from cce.core.launch import (
    API_KEY_VAR,
    BASE_URL_VAR,
    MODEL_VAR,
    ChildExitError,
    DelegationError,
    DirectLauncher,
    Environment,
    ExecutableNotFoundError,
    ExecutableResolver,
    LaunchConfigError,
    LauncherBase,
    LaunchParameters,
    LaunchPipeline,
    LaunchTimeoutError,
    PassthroughLauncher,
    SpawnError,
    StaticDelegationPlan,
    create_launcher,
)
from cce.core.launch.launcher import exit_code_from_returncode, plan_to_parameters

DUMP_ENV = (
    "import json, os, sys\n"
    "json.dump({k: os.environ.get(k) for k in sys.argv[2:]}, open(sys.argv[1], 'w'))\n"
)

DUMP_CWD = "import os, sys\nopen(sys.argv[1], 'w').write(os.getcwd())\n"


# ============================================================================
# Helpers
# ============================================================================


class TestExitCodeFromReturncode:
    """Tests for returncode to exit code mapping."""

    def test_normal_exit(self) -> None:
        assert exit_code_from_returncode(0) == 0
        assert exit_code_from_returncode(3) == 3

    def test_signal_exit(self) -> None:
        assert exit_code_from_returncode(-2) == 130
        assert exit_code_from_returncode(-9) == 137


class TestCreateLauncher:
    """Tests for strategy selection."""

    def test_selects_strategy(self, pipeline: LaunchPipeline) -> None:
        assert isinstance(create_launcher(passthrough=True, pipeline=pipeline), PassthroughLauncher)
        assert isinstance(create_launcher(passthrough=False, pipeline=pipeline), DirectLauncher)

    def test_both_satisfy_contract(self, pipeline: LaunchPipeline) -> None:
        assert isinstance(DirectLauncher(pipeline), LauncherBase)
        assert isinstance(PassthroughLauncher(pipeline), LauncherBase)

    def test_shared_pipeline_shares_metrics(
        self, pipeline: LaunchPipeline, make_params
    ) -> None:
        DirectLauncher(pipeline).launch(make_params(dry_run=True))
        PassthroughLauncher(pipeline).launch(make_params(dry_run=True))

        assert DirectLauncher(pipeline).get_metrics().total_launches == 2


# ============================================================================
# Validation and resolution
# ============================================================================


class TestValidationAndResolution:
    """The pipeline validates before resolving and resolves before spawning."""

    def test_validation_runs_before_resolution(self, pipeline: LaunchPipeline) -> None:
        launcher = DirectLauncher(pipeline)
        params = LaunchParameters(environment=None, arguments=["--version"])

        with patch.object(pipeline.resolver, "resolve") as mock_resolve:
            with pytest.raises(LaunchConfigError):
                launcher.launch(params)

        mock_resolve.assert_not_called()
        metrics = launcher.get_metrics()
        assert metrics.total_launches == 1
        assert metrics.failed_launches == 1
        assert metrics.environment_metrics == {}

    def test_invalid_timeout_never_spawns(self, pipeline: LaunchPipeline, make_params) -> None:
        with patch("subprocess.Popen") as mock_popen:
            with pytest.raises(LaunchConfigError):
                DirectLauncher(pipeline).launch(make_params(timeout=0.2))

        mock_popen.assert_not_called()

    def test_executable_not_found(self, make_params) -> None:
        launcher = DirectLauncher(LaunchPipeline(ExecutableResolver()))

        with patch("shutil.which", return_value=None):
            with pytest.raises(ExecutableNotFoundError):
                launcher.launch(make_params())
            with pytest.raises(ExecutableNotFoundError):
                launcher.validate_claude_code()

        metrics = launcher.get_metrics()
        assert metrics.failed_launches == 1
        assert metrics.environment_metrics["work"].error_count == 1

    def test_claude_code_path_accessors(self, pipeline: LaunchPipeline) -> None:
        launcher = DirectLauncher(pipeline)
        assert launcher.get_claude_code_path() == sys.executable

        launcher.set_claude_code_path("/custom/claude")
        assert launcher.get_claude_code_path() == "/custom/claude"

    def test_spawn_error_for_missing_file(
        self, pipeline: LaunchPipeline, make_params, tmp_path: Path
    ) -> None:
        launcher = DirectLauncher(pipeline)
        launcher.set_claude_code_path(str(tmp_path / "missing-claude"))
        params = make_params()

        with pytest.raises(SpawnError) as exc_info:
            launcher.launch(params)

        assert exc_info.value.arguments == list(params.arguments)
        assert isinstance(exc_info.value.cause, OSError)
        assert launcher.get_metrics().failed_launches == 1


# ============================================================================
# Dry run
# ============================================================================


class TestDryRun:
    """Dry runs resolve and build everything but never spawn."""

    def test_no_process_created(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = DirectLauncher(pipeline)

        with patch("subprocess.Popen") as mock_popen:
            result = launcher.launch(make_params(dry_run=True))

        mock_popen.assert_not_called()
        assert result.dry_run
        assert result.exit_code == 0
        assert result.executable == sys.executable

    def test_counts_as_success(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = PassthroughLauncher(pipeline)

        launcher.launch(make_params(dry_run=True))

        metrics = launcher.get_metrics()
        assert metrics.total_launches == 1
        assert metrics.successful_launches == 1
        assert metrics.environment_metrics["work"].usage_count == 1

    def test_verbose_report_masks_api_key(
        self, pipeline: LaunchPipeline, make_params, console_output, work_env: Environment
    ) -> None:
        DirectLauncher(pipeline).launch(make_params(dry_run=True, verbose=True))

        output = console_output.getvalue()
        assert "DRY RUN: Would execute" in output
        assert sys.executable in output
        assert f"{API_KEY_VAR}=sk-a***5678" in output
        assert work_env.api_key not in output

    def test_quiet_dry_run_prints_nothing(
        self, pipeline: LaunchPipeline, make_params, console_output
    ) -> None:
        DirectLauncher(pipeline).launch(make_params(dry_run=True))
        assert console_output.getvalue() == ""

    def test_metrics_disabled(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = DirectLauncher(pipeline)

        launcher.launch(make_params(dry_run=True, metrics_enabled=False))

        assert launcher.get_metrics().total_launches == 0


# ============================================================================
# Real children
# ============================================================================


class TestChildProcess:
    """Spawning, environment injection and exit code handling."""

    def test_successful_launch(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = DirectLauncher(pipeline)

        result = launcher.launch(make_params())

        assert result.exit_code == 0
        assert not result.dry_run
        assert result.forwarded_signals == ()
        metrics = launcher.get_metrics()
        assert metrics.successful_launches == 1
        assert metrics.environment_metrics["work"].usage_count == 1

    def test_profile_injected_into_child(
        self, pipeline: LaunchPipeline, make_params, tmp_path: Path
    ) -> None:
        out = tmp_path / "env.json"
        keys = [BASE_URL_VAR, API_KEY_VAR, MODEL_VAR, "ANTHROPIC_HEADER_XCustomHeader", "EXTRA"]
        params = make_params(DUMP_ENV, str(out), *keys, env_vars={"EXTRA": "line1\nline2"})

        DirectLauncher(pipeline).launch(params)

        seen = json.loads(out.read_text())
        assert seen[BASE_URL_VAR] == "https://api.example.com"
        assert seen[API_KEY_VAR] == "sk-ant-REDACTED"
        assert seen[MODEL_VAR] == "claude-3-5-sonnet-20241022"
        assert seen["ANTHROPIC_HEADER_XCustomHeader"] == "custom-value"
        assert seen["EXTRA"] == "line1 line2"

    def test_model_absent_in_child(
        self, pipeline: LaunchPipeline, make_params, staging_env: Environment, tmp_path: Path
    ) -> None:
        out = tmp_path / "env.json"
        params = make_params(DUMP_ENV, str(out), MODEL_VAR, environment=staging_env)

        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop(MODEL_VAR, None)
            DirectLauncher(pipeline).launch(params)

        assert json.loads(out.read_text())[MODEL_VAR] is None

    def test_parent_environment_inherited(
        self, pipeline: LaunchPipeline, make_params, tmp_path: Path
    ) -> None:
        out = tmp_path / "env.json"
        params = make_params(DUMP_ENV, str(out), "CCE_PARENT_PROBE")

        with patch.dict(os.environ, {"CCE_PARENT_PROBE": "inherited"}):
            DirectLauncher(pipeline).launch(params)

        assert json.loads(out.read_text())["CCE_PARENT_PROBE"] == "inherited"

    def test_working_dir(self, pipeline: LaunchPipeline, make_params, tmp_path: Path) -> None:
        workdir = tmp_path / "project"
        workdir.mkdir()
        out = tmp_path / "cwd.txt"

        DirectLauncher(pipeline).launch(make_params(DUMP_CWD, str(out), working_dir=str(workdir)))

        assert Path(out.read_text()).resolve() == workdir.resolve()

    def test_direct_non_zero_exit(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = DirectLauncher(pipeline)

        with pytest.raises(ChildExitError) as exc_info:
            launcher.launch(make_params("import sys; sys.exit(3)"))

        assert exc_info.value.exit_code == 3
        metrics = launcher.get_metrics()
        assert metrics.failed_launches == 1
        assert metrics.environment_metrics["work"].error_count == 1

    def test_passthrough_mirrors_exit_code(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = PassthroughLauncher(pipeline)

        with pytest.raises(SystemExit) as exc_info:
            launcher.launch(make_params("import sys; sys.exit(7)"))

        assert exc_info.value.code == 7
        metrics = launcher.get_metrics()
        assert metrics.total_launches == 1
        assert metrics.failed_launches == 1

    def test_passthrough_request_on_direct_launcher(
        self, pipeline: LaunchPipeline, make_params
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            DirectLauncher(pipeline).launch(
                make_params("import sys; sys.exit(9)", passthrough_mode=True)
            )
        assert exc_info.value.code == 9

    def test_passthrough_disabled_falls_back_to_direct(
        self, pipeline: LaunchPipeline, make_params
    ) -> None:
        launcher = PassthroughLauncher(pipeline)
        launcher.set_passthrough_mode(False)

        with pytest.raises(ChildExitError):
            launcher.launch(make_params("import sys; sys.exit(2)"))

    def test_child_killed_by_signal(self, pipeline: LaunchPipeline, make_params) -> None:
        code = "import os, signal; os.kill(os.getpid(), signal.SIGKILL)"

        with pytest.raises(ChildExitError) as exc_info:
            DirectLauncher(pipeline).launch(make_params(code))

        assert exc_info.value.exit_code == 137

    def test_verbose_launch_prints_markup_like_names(
        self, pipeline: LaunchPipeline, make_params, console_output
    ) -> None:
        env = Environment(name="a[/]", base_url="https://api.example.com", api_key="k")

        result = DirectLauncher(pipeline).launch(make_params(environment=env, verbose=True))

        assert result.exit_code == 0
        assert "with profile 'a[/]'" in console_output.getvalue()


class TestTimeout:
    """Deadline enforcement."""

    def test_enforced_timeout_stops_child(self, pipeline: LaunchPipeline, make_params) -> None:
        launcher = DirectLauncher(pipeline)
        params = make_params("import time; time.sleep(30)", timeout=1, enforce_timeout=True)

        started = time.monotonic()
        with pytest.raises(LaunchTimeoutError) as exc_info:
            launcher.launch(params)

        assert time.monotonic() - started < 10
        assert exc_info.value.timeout == 1
        assert launcher.get_metrics().failed_launches == 1

    def test_ignored_sigterm_escalates_to_kill(
        self, pipeline: LaunchPipeline, make_params
    ) -> None:
        code = (
            "import signal, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "time.sleep(30)\n"
        )
        params = make_params(code, timeout=1, enforce_timeout=True)

        started = time.monotonic()
        with pytest.raises(LaunchTimeoutError):
            DirectLauncher(pipeline).launch(params)

        assert time.monotonic() - started < 15

    def test_timeout_not_enforced_by_default(self, pipeline: LaunchPipeline, make_params) -> None:
        params = make_params("import time; time.sleep(1.5)", timeout=1)

        result = DirectLauncher(pipeline).launch(params)

        assert result.exit_code == 0


# ============================================================================
# Delegation and legacy entry points
# ============================================================================


class TestDelegation:
    """launch_with_delegation and launch_legacy."""

    def test_plan_to_parameters(self, work_env: Environment) -> None:
        plan = StaticDelegationPlan(
            environment=work_env,
            claude_args=["chat"],
            env_vars={"A": "1"},
            working_dir="/srv",
        )

        params = plan_to_parameters(plan)

        assert params.environment is work_env
        assert params.arguments == ("chat",)
        assert params.env_vars == {"A": "1"}
        assert params.working_dir == "/srv"
        assert params.timeout == 300

    def test_invalid_plan(self, pipeline: LaunchPipeline) -> None:
        with pytest.raises(DelegationError):
            DirectLauncher(pipeline).launch_with_delegation(object())  # type: ignore[arg-type]

    def test_delegated_launch(
        self, pipeline: LaunchPipeline, work_env: Environment, tmp_path: Path
    ) -> None:
        out = tmp_path / "env.json"
        plan = StaticDelegationPlan(
            environment=work_env,
            claude_args=["-c", DUMP_ENV, str(out), "PLAN_VAR"],
            env_vars={"PLAN_VAR": "from-plan"},
        )

        result = PassthroughLauncher(pipeline).launch_with_delegation(plan)

        assert result.exit_code == 0
        assert json.loads(out.read_text())["PLAN_VAR"] == "from-plan"

    def test_delegated_launch_uses_plan_working_dir(
        self, pipeline: LaunchPipeline, work_env: Environment, tmp_path: Path
    ) -> None:
        out = tmp_path / "cwd.txt"
        plan = StaticDelegationPlan(
            environment=work_env,
            claude_args=["-c", DUMP_CWD, str(out)],
            working_dir=str(tmp_path),
        )

        DirectLauncher(pipeline).launch_with_delegation(plan)

        assert Path(out.read_text()).resolve() == tmp_path.resolve()

    def test_direct_routes_to_passthrough_when_enabled(
        self, pipeline: LaunchPipeline, work_env: Environment
    ) -> None:
        launcher = DirectLauncher(pipeline)
        launcher.set_passthrough_mode(True)
        plan = StaticDelegationPlan(
            environment=work_env,
            claude_args=["-c", "import sys; sys.exit(5)"],
        )

        with pytest.raises(SystemExit) as exc_info:
            launcher.launch_with_delegation(plan)

        assert exc_info.value.code == 5
        assert launcher.get_metrics().failed_launches == 1

    def test_direct_delegation_without_passthrough(
        self, pipeline: LaunchPipeline, work_env: Environment
    ) -> None:
        plan = StaticDelegationPlan(
            environment=work_env,
            claude_args=["-c", "import sys; sys.exit(5)"],
        )

        with pytest.raises(ChildExitError):
            DirectLauncher(pipeline).launch_with_delegation(plan)

    def test_launch_legacy(self, pipeline: LaunchPipeline, work_env: Environment) -> None:
        result = DirectLauncher(pipeline).launch_legacy(work_env, ["-c", "pass"])
        assert result.exit_code == 0

    def test_launch_legacy_without_environment(self, pipeline: LaunchPipeline) -> None:
        with pytest.raises(LaunchConfigError):
            DirectLauncher(pipeline).launch_legacy(None, ["-c", "pass"])


# ============================================================================
# Concurrency
# ============================================================================


class TestConcurrentLaunches:
    """Concurrent launches on one launcher lose no metric updates."""

    def test_distinct_profiles_dry_run(self, pipeline: LaunchPipeline) -> None:
        launcher = DirectLauncher(pipeline)
        profiles = [
            Environment(name=f"env-{i}", base_url="https://api.example.com", api_key="k")
            for i in range(6)
        ]
        launches_per_profile = 25
        errors: list[BaseException] = []

        def worker(env: Environment) -> None:
            try:
                for _ in range(launches_per_profile):
                    launcher.launch(
                        LaunchParameters(environment=env, arguments=["--version"], dry_run=True)
                    )
            except BaseException as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(env,)) for env in profiles]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        metrics = launcher.get_metrics()
        assert metrics.total_launches == len(profiles) * launches_per_profile
        assert metrics.successful_launches == metrics.total_launches
        for env in profiles:
            assert metrics.environment_metrics[env.name].usage_count == launches_per_profile

    def test_real_children_from_worker_threads(
        self, pipeline: LaunchPipeline, make_params
    ) -> None:
        launcher = DirectLauncher(pipeline)
        results = []

        def worker() -> None:
            results.append(launcher.launch(make_params()))

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert [r.exit_code for r in results] == [0, 0, 0]
        assert launcher.get_metrics().successful_launches == 3

    def test_passthrough_exit_from_worker_thread_reaches_caller(
        self, pipeline: LaunchPipeline, make_params
    ) -> None:
        launcher = PassthroughLauncher(pipeline)
        exits: list[SystemExit] = []

        def worker() -> None:
            try:
                launcher.launch(make_params("import sys; sys.exit(7)"))
            except SystemExit as e:
                exits.append(e)

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert [e.code for e in exits] == [7]
        assert launcher.get_metrics().failed_launches == 1
