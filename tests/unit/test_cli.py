# tests/unit/test_cli.py
"""
CLI unit tests.

Tests each command via typer's CliRunner. _get_lifecycle is patched to
build a lifecycle over a temporary database with in-memory catalogs and a
fake LLM, so no config file, catalog file or model server is touched.
"""

import re

import pytest
from typer.testing import CliRunner
from unittest.mock import patch

from fitai_pipeline.background.lifecycle import ServerLifecycle
from fitai_pipeline.cli import app
from fitai_pipeline.config.schema import FilterConfig, JobsConfig, PipelineConfig

from tests.unit.factories import FakeLLM, workout_plan

runner = CliRunner()

GOOD = workout_plan("ex_pushup", "ex_squat", "ex_plank")
PARAMS = '{"equipment": ["body weight", "dumbbell"]}'


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM(GOOD)


@pytest.fixture
def cli_env(db_path, catalogs, llm):
    """Patch the CLI's lifecycle factory onto a temp database."""
    config = PipelineConfig(
        filter=FilterConfig(min_candidates=3, max_candidates=20),
        jobs=JobsConfig(staleness_seconds=0, backoff_min_seconds=0, backoff_max_seconds=0),
    )

    async def fake_get_lifecycle(with_catalogs: bool = True):
        lifecycle = ServerLifecycle(
            db_path,
            config=config,
            llm_client=llm,
            catalogs=catalogs if with_catalogs else {},
        )
        await lifecycle.initialize()
        return lifecycle

    with patch("fitai_pipeline.cli._get_lifecycle", new=fake_get_lifecycle):
        yield


def _queued_job_id(output: str) -> str:
    match = re.search(r"Queued job ([a-f0-9]{12})", output)
    assert match, output
    return match.group(1)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestHelp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "Catalog-grounded workout and meal plan generation" in result.output

    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("submit", "status", "list", "sweep", "serve"):
            assert command in result.output


class TestSubmit:
    def test_detach_queues_job(self, cli_env, llm):
        result = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS, "--detach"])

        assert result.exit_code == 0, result.output
        assert "Queued job" in result.output
        assert "fitai-pipeline sweep" in result.output
        assert llm.calls == 0

    def test_inline_prints_plan(self, cli_env, llm):
        result = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS])

        assert result.exit_code == 0, result.output
        assert '"kind": "workout_plan"' in result.output
        assert '"asset_ref": "media/ex_pushup.mp4"' in result.output
        assert llm.calls == 1

    def test_repeat_submit_served_from_cache(self, cli_env, llm):
        runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS])
        result = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS])

        assert result.exit_code == 0, result.output
        assert llm.calls == 1

    def test_params_from_yaml_file(self, cli_env, tmp_path):
        params_file = tmp_path / "meal.yaml"
        params_file.write_text("calories: 2000\ndiet: vegetarian\n", encoding="utf-8")

        result = runner.invoke(
            app, ["submit", "meal_plan", "--file", str(params_file), "--detach"]
        )

        assert result.exit_code == 0, result.output
        assert "Queued job" in result.output

    def test_params_and_file_together_rejected(self, cli_env, tmp_path):
        params_file = tmp_path / "meal.json"
        params_file.write_text('{"calories": 2000}', encoding="utf-8")

        result = runner.invoke(
            app, ["submit", "meal_plan", "--params", "{}", "--file", str(params_file)]
        )

        assert result.exit_code == 2

    def test_unknown_kind(self, cli_env):
        result = runner.invoke(app, ["submit", "sleep_plan", "--params", "{}"])

        assert result.exit_code == 1
        assert "Unknown job kind" in result.output

    def test_failed_generation_exits_nonzero(self, cli_env, llm):
        result = runner.invoke(
            app, ["submit", "workout_plan", "--params", '{"equipment": ["kettlebell"]}']
        )

        assert result.exit_code == 1
        assert "INSUFFICIENT_CANDIDATES" in result.output
        assert llm.calls == 0


class TestStatus:
    def test_status_of_queued_job(self, cli_env):
        queued = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS, "--detach"])
        job_id = _queued_job_id(queued.output)

        result = runner.invoke(app, ["status", job_id])

        assert result.exit_code == 0, result.output
        assert job_id in result.output
        assert "pending" in result.output

    def test_status_with_plan(self, cli_env):
        queued = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS, "--detach"])
        job_id = _queued_job_id(queued.output)
        runner.invoke(app, ["sweep"])

        result = runner.invoke(app, ["status", job_id, "--plan"])

        assert result.exit_code == 0, result.output
        assert "completed" in result.output
        assert '"plan"' in result.output

    def test_status_other_owner(self, cli_env):
        queued = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS, "--detach"])
        job_id = _queued_job_id(queued.output)

        result = runner.invoke(app, ["status", job_id, "--owner", "someone-else"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_status_invalid_id(self, cli_env):
        result = runner.invoke(app, ["status", "nope"])

        assert result.exit_code == 1
        assert "Invalid job ID" in result.output


class TestList:
    def test_empty(self, cli_env):
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No jobs found." in result.output

    def test_lists_jobs(self, cli_env):
        queued = runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS, "--detach"])
        job_id = _queued_job_id(queued.output)

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "JOB ID" in result.output
        assert job_id in result.output
        assert "workout_plan" in result.output


class TestSweep:
    def test_sweep_processes_queued_jobs(self, cli_env, llm):
        runner.invoke(app, ["submit", "workout_plan", "--params", PARAMS, "--detach"])

        result = runner.invoke(app, ["sweep"])

        assert result.exit_code == 0, result.output
        assert "Examined 1: 1 completed" in result.output
        assert llm.calls == 1

    def test_sweep_with_nothing_to_do(self, cli_env):
        result = runner.invoke(app, ["sweep"])

        assert result.exit_code == 0
        assert "Examined 0" in result.output
