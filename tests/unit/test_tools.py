# tests/unit/test_tools.py
"""
Tests for the tool implementations (not the MCP wrappers) and input sanitization.

Tools run against a real orchestrator on temporary SQLite with a fake LLM.
"""

import asyncio

import pytest
from fastmcp.exceptions import ToolError

from fitai_pipeline.background.sweep import SweepScheduler
from fitai_pipeline.models.jobs import JobKind
from fitai_pipeline.tools import get_job_status, list_jobs, run_sweep, submit_generation_job
from fitai_pipeline.validation.sanitize import (
    parse_kind,
    sanitize_input_params,
    sanitize_job_id,
    sanitize_owner_id,
)

from tests.unit.factories import FakeLLM, workout_plan

PARAMS = {"equipment": ["body weight", "dumbbell"], "goal": "strength"}
GOOD = workout_plan("ex_pushup", "ex_squat", "ex_plank")


class TestSanitize:
    def test_job_id_normalized(self):
        assert sanitize_job_id("  ABC123DEF456 ") == "abc123def456"

    @pytest.mark.parametrize("job_id", ["", "abc", "abc123def456789", "zzz123def456", "../etc/passw"])
    def test_job_id_rejected(self, job_id):
        with pytest.raises(ToolError, match="Invalid job ID"):
            sanitize_job_id(job_id)

    def test_owner_id_accepts_common_forms(self):
        assert sanitize_owner_id(" user-42 ") == "user-42"
        assert sanitize_owner_id("auth0:abc@example.com") == "auth0:abc@example.com"

    @pytest.mark.parametrize("owner_id", ["", "   ", "-leading", "has space", "x" * 129])
    def test_owner_id_rejected(self, owner_id):
        with pytest.raises(ToolError, match="Invalid owner ID"):
            sanitize_owner_id(owner_id)

    def test_parse_kind_is_lenient_about_case_and_dashes(self):
        assert parse_kind("workout_plan") == JobKind.WORKOUT_PLAN
        assert parse_kind("Meal-Plan") == JobKind.MEAL_PLAN

    def test_parse_kind_unknown(self):
        with pytest.raises(ToolError, match="Unknown job kind"):
            parse_kind("sleep_plan")

    def test_params_accept_json_string(self):
        assert sanitize_input_params('{"calories": 1800}') == {"calories": 1800}

    def test_params_reject_bad_json(self):
        with pytest.raises(ToolError, match="not valid JSON"):
            sanitize_input_params("{calories: 1800")

    def test_params_reject_non_object(self):
        with pytest.raises(ToolError, match="must be a JSON object"):
            sanitize_input_params(["body weight"])


class TestSubmitGenerationJob:
    @pytest.mark.asyncio
    async def test_submit_processes_inline(self, build_orchestrator):
        llm = FakeLLM(GOOD)
        orchestrator = build_orchestrator(llm)

        submitted = await submit_generation_job("user-1", "workout_plan", PARAMS, orchestrator)

        assert submitted["status"] == "pending"
        assert submitted["cached"] is False
        assert len(submitted["fingerprint"]) == 64
        assert "get_job_status" in submitted["next_steps"]

        await asyncio.gather(*orchestrator._inline_tasks)
        status = await get_job_status(submitted["job_id"], "user-1", orchestrator)
        assert status["status"] == "completed"
        assert llm.calls == 1

    @pytest.mark.asyncio
    async def test_submit_without_inline_leaves_job_pending(self, build_orchestrator):
        llm = FakeLLM(GOOD)
        orchestrator = build_orchestrator(llm)

        submitted = await submit_generation_job(
            "user-1", "workout_plan", PARAMS, orchestrator, process_inline=False
        )

        assert not orchestrator._inline_tasks
        status = await get_job_status(submitted["job_id"], "user-1", orchestrator)
        assert status["status"] == "pending"
        assert llm.calls == 0

    @pytest.mark.asyncio
    async def test_second_identical_submit_is_cached(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))
        first = await submit_generation_job(
            "user-1", "workout_plan", PARAMS, orchestrator, process_inline=False
        )
        await orchestrator.process_job(first["job_id"])

        # Same request, different key order
        second = await submit_generation_job(
            "user-2", "workout_plan", {"goal": "strength", "equipment": ["dumbbell", "body weight"]},
            orchestrator,
        )

        assert second["cached"] is True
        assert second["status"] == "completed"
        assert second["fingerprint"] == first["fingerprint"]
        assert second["next_steps"].startswith("Result is ready")

    @pytest.mark.asyncio
    async def test_params_as_json_string(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))

        submitted = await submit_generation_job(
            "user-1", "meal_plan", '{"calories": 2000}', orchestrator, process_inline=False
        )

        assert submitted["status"] == "pending"

    @pytest.mark.asyncio
    async def test_invalid_params_become_tool_error(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))

        with pytest.raises(ToolError, match="Invalid meal_plan parameters"):
            await submit_generation_job(
                "user-1", "meal_plan", {"calories": "lots"}, orchestrator, process_inline=False
            )

    @pytest.mark.asyncio
    async def test_invalid_owner(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))

        with pytest.raises(ToolError):
            await submit_generation_job("", "workout_plan", PARAMS, orchestrator)


class TestGetJobStatus:
    @pytest.mark.asyncio
    async def test_completed_job_carries_result(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))
        submitted = await submit_generation_job(
            "user-1", "workout_plan", PARAMS, orchestrator, process_inline=False
        )
        await orchestrator.process_job(submitted["job_id"])

        status = await get_job_status(submitted["job_id"], "user-1", orchestrator)

        assert status["status"] == "completed"
        assert status["attempts"] == 1
        assert status["error"] is None
        assert status["message"] == "Job complete."
        assert status["result"]["kind"] == "workout_plan"
        assert status["result"]["metadata"]["catalog_version"] == "2026.10"
        entry = status["result"]["plan"]["sessions"][0]["exercises"][0]
        assert entry["asset_ref"] == "media/ex_pushup.mp4"

    @pytest.mark.asyncio
    async def test_failed_job_carries_typed_error(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))
        submitted = await submit_generation_job(
            "user-1", "workout_plan", {"equipment": ["kettlebell"]}, orchestrator,
            process_inline=False,
        )
        await orchestrator.process_job(submitted["job_id"])

        status = await get_job_status(submitted["job_id"], "user-1", orchestrator)

        assert status["status"] == "failed"
        assert status["result"] is None
        assert status["error"]["code"] == "INSUFFICIENT_CANDIDATES"
        assert status["error"]["retryable"] is False
        assert "Contact support" in status["message"]

    @pytest.mark.asyncio
    async def test_other_owner_sees_not_found(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))
        submitted = await submit_generation_job(
            "user-1", "workout_plan", PARAMS, orchestrator, process_inline=False
        )

        with pytest.raises(ToolError, match="not found"):
            await get_job_status(submitted["job_id"], "user-2", orchestrator)

    @pytest.mark.asyncio
    async def test_unknown_job(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))

        with pytest.raises(ToolError, match="not found"):
            await get_job_status("abc123def456", "user-1", orchestrator)


class TestListJobs:
    @pytest.mark.asyncio
    async def test_lists_only_owner_jobs(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))
        mine = await submit_generation_job(
            "user-1", "workout_plan", PARAMS, orchestrator, process_inline=False
        )
        await submit_generation_job(
            "user-2", "meal_plan", {"calories": 2000}, orchestrator, process_inline=False
        )

        result = await list_jobs("user-1", orchestrator)

        assert result["total"] == 1
        assert result["jobs"][0]["job_id"] == mine["job_id"]
        assert result["jobs"][0]["kind"] == "workout_plan"
        assert result["jobs"][0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_empty(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))

        result = await list_jobs("nobody", orchestrator)

        assert result == {"jobs": [], "total": 0}


class TestRunSweep:
    @pytest.mark.asyncio
    async def test_reports_counts(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeLLM(GOOD))
        await submit_generation_job(
            "user-1", "workout_plan", PARAMS, orchestrator, process_inline=False
        )

        report = await run_sweep(SweepScheduler(orchestrator, staleness_seconds=0))

        assert report["examined"] == 1
        assert report["completed"] == 1
        assert report["errors"] == 0
