import json
import pytest
from campaign_site.services.generation_logger import GenerationLogger, estimate_cost, format_duration


class StepClock:
    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0)


def test_format_duration():
    assert format_duration(4.321) == "4.32s"
    assert format_duration(125.4) == "2m 5s"


def test_estimate_cost_for_sonnet():
    cost = estimate_cost("claude-sonnet-4-5-20250929", 1000, 1000)

    assert cost["estimatedCostUSD"] == pytest.approx(0.018)
    assert cost["estimatedCostSEK"] == pytest.approx(0.018 * 10.5)


def test_unknown_model_priced_as_sonnet():
    assert estimate_cost("okand-modell", 2000, 0) == estimate_cost("claude-sonnet-4-5-20250929", 2000, 0)


def test_cached_tokens_use_cached_price():
    cost = estimate_cost("claude-haiku-4-5-20251001", 1000, 0, cached_tokens=1000)
    assert cost["costBreakdown"]["inputCost"] == 0
    assert cost["costBreakdown"]["cachedInputCost"] == pytest.approx(0.0001)


def test_log_totals_and_file(tmp_path):
    """Test that a completed run is summarised and written with the markdown appended"""
    gen_log = GenerationLogger("abc", {"subject": "Matematik"}, tmp_path, clock=StepClock(100.0, 103.5, 103.5, 103.6))

    gen_log.start_step(1, "Lesson Generation", "Generate", "claude-sonnet-4-5-20250929")
    gen_log.log_prompts("system", "user")
    gen_log.log_response('{"title": "x"}', {"title": "x"})
    gen_log.log_token_usage(1000, 1000)
    gen_log.end_step()
    gen_log.start_step(2, "Document Compilation", "Compile", "local")
    gen_log.end_step()
    gen_log.complete("# Lektion")

    summary = gen_log.log["summary"]
    assert summary["totalDurationSeconds"] == 3.6
    assert summary["totalDurationFormatted"] == "3.60s"
    assert summary["totalTokens"] == {"input": 1000, "output": 1000, "total": 2000}
    assert summary["costFormattedUSD"] == "$0.0180"
    assert summary["costFormattedSEK"] == "0.19 kr"

    path = gen_log.save_to_file()
    content = (tmp_path / path.split("/")[-1]).read_text(encoding="utf-8")
    json_part, markdown_part = content.split("\n\n// ", 1)
    assert json.loads(json_part)["success"] is True
    assert "finalDocument" not in json.loads(json_part)
    assert "/*\n# Lektion\n*/" in markdown_part

    text = gen_log.summary()
    assert "Status: SUCCESS" in text
    assert "Tokens: 1,000 in + 1,000 out = 2,000 total" in text


def test_failed_run_records_error(tmp_path):
    gen_log = GenerationLogger("abc", {}, tmp_path, clock=StepClock(1.0, 2.0))
    gen_log.start_step(1, "Lesson Generation", "Generate", "claude-sonnet-4-5-20250929")
    gen_log.end_step("Overloaded")
    gen_log.fail("Overloaded")

    assert gen_log.log["success"] is False
    assert gen_log.log["steps"][0]["error"] == "Overloaded"
    assert "Status: FAILED" in gen_log.summary()
    assert "Error: Overloaded" in gen_log.summary()


def test_unwritable_logs_dir_is_skipped(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    gen_log = GenerationLogger("abc", {}, blocker / "logs")

    assert gen_log.save_to_file() == ""
