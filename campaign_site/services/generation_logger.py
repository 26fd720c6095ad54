"""Per-run log of lesson generation: prompts, responses, timing and cost."""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

STOCKHOLM = ZoneInfo("Europe/Stockholm")

# Per 1K tokens
PRICING = {
    "claude-sonnet-4-5-20250929": {"input": 0.003, "cached_input": 0.00375, "output": 0.015},
    "claude-haiku-4-5-20251001": {"input": 0.001, "cached_input": 0.0001, "output": 0.005},
    "local": {"input": 0, "cached_input": 0, "output": 0},
}
DEFAULT_PRICING_MODEL = "claude-sonnet-4-5-20250929"
USD_TO_SEK = 10.50

SEPARATOR = "═" * 55


def stockholm_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(STOCKHOLM)
    return now.astimezone(STOCKHOLM).strftime("%Y-%m-%d %H:%M:%S")


def format_duration(seconds: float) -> str:
    """Format as "Xm Ys" from one minute up, otherwise "N.NNs"."""
    minutes = int(seconds // 60)
    if minutes > 0:
        return f"{minutes}m {round(seconds % 60)}s"
    return f"{seconds:.2f}s"


def estimate_cost(model: str, input_tokens: int, output_tokens: int, cached_tokens: int = 0) -> dict:
    """
    Estimate the cost of one model call.

    Args:
        model: Model id; unknown models are priced as Sonnet
        input_tokens: Prompt tokens including cached ones
        output_tokens: Completion tokens
        cached_tokens: Prompt tokens served from the cache

    Returns:
        Dict with USD and SEK estimates plus a per-kind breakdown
    """
    pricing = PRICING.get(model, PRICING[DEFAULT_PRICING_MODEL])

    input_cost = (input_tokens - cached_tokens) / 1000 * pricing["input"]
    cached_input_cost = cached_tokens / 1000 * pricing["cached_input"]
    output_cost = output_tokens / 1000 * pricing["output"]
    usd = input_cost + cached_input_cost + output_cost

    return {
        "estimatedCostUSD": usd,
        "estimatedCostSEK": usd * USD_TO_SEK,
        "costBreakdown": {
            "inputCost": input_cost,
            "cachedInputCost": cached_input_cost,
            "outputCost": output_cost,
        },
    }


class GenerationLogger:
    """Collects step-by-step details for one generation session."""

    def __init__(
        self,
        session_id: str,
        survey_data: dict,
        logs_dir: Path,
        clock: Callable[[], float] = time.time,
    ):
        self.logs_dir = logs_dir
        self._clock = clock
        self.log: dict[str, Any] = {
            "sessionId": session_id,
            "timestamp": stockholm_timestamp(),
            "surveyData": survey_data,
            "steps": [],
            "success": False,
        }
        self.current_step: Optional[dict] = None

    def start_step(self, number: int, name: str, description: str, model: str) -> None:
        self.current_step = {
            "stepNumber": number,
            "stepName": name,
            "description": description,
            "startTime": self._clock(),
            "model": model,
            "systemPrompt": "",
            "userPrompt": "",
        }

    def log_prompts(self, system_prompt: str, user_prompt: str) -> None:
        if self.current_step:
            self.current_step["systemPrompt"] = system_prompt
            self.current_step["userPrompt"] = user_prompt

    def log_response(self, raw_response: str, parsed_response: Any = None) -> None:
        if self.current_step:
            self.current_step["rawResponse"] = raw_response
            self.current_step["parsedResponse"] = parsed_response

    def log_token_usage(self, input_tokens: int, output_tokens: int, cached_tokens: int = 0) -> None:
        if not self.current_step:
            return

        usage = {
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "totalTokens": input_tokens + output_tokens,
        }
        if cached_tokens > 0:
            usage["cachedTokens"] = cached_tokens
        usage.update(estimate_cost(self.current_step["model"], input_tokens, output_tokens, cached_tokens))
        self.current_step["tokenUsage"] = usage

    def end_step(self, error: Optional[str] = None) -> None:
        if not self.current_step:
            return

        step = self.current_step
        step["endTime"] = self._clock()
        step["durationSeconds"] = round(step["endTime"] - step["startTime"], 2)
        if error:
            step["error"] = error

        self.log["steps"].append(step)
        self.current_step = None

    def complete(self, final_document: str) -> None:
        self.log["success"] = True
        self.log["finalDocument"] = final_document
        self._calculate_totals()

    def fail(self, error: str) -> None:
        self.log["success"] = False
        self.log["error"] = error
        self._calculate_totals()

    def _calculate_totals(self) -> None:
        steps = self.log["steps"]
        if not steps:
            return

        end = steps[-1].get("endTime") or self._clock()
        duration = round(end - steps[0]["startTime"], 2)

        usages = [s["tokenUsage"] for s in steps if "tokenUsage" in s]
        cost_usd = sum(u["estimatedCostUSD"] for u in usages)
        cost_sek = sum(u["estimatedCostSEK"] for u in usages)

        self.log["summary"] = {
            "totalDurationSeconds": duration,
            "totalDurationFormatted": format_duration(duration),
            "totalTokens": {
                "input": sum(u["inputTokens"] for u in usages),
                "output": sum(u["outputTokens"] for u in usages),
                "total": sum(u["totalTokens"] for u in usages),
            },
            "totalEstimatedCostUSD": cost_usd,
            "totalEstimatedCostSEK": cost_sek,
            "costFormattedUSD": f"${cost_usd:.4f}",
            "costFormattedSEK": f"{cost_sek:.2f} kr",
        }

    def save_to_file(self) -> str:
        """
        Write the log as JSON with the generated markdown appended in a comment block.

        Returns:
            Path of the written file, or "" when the filesystem is not writable
        """
        filename = f"generation-{stockholm_timestamp().replace(' ', '-').replace(':', '-')}.json"
        log = {k: v for k, v in self.log.items() if k != "finalDocument"}

        content = json.dumps(log, indent=2, ensure_ascii=False, default=str)
        final_document = self.log.get("finalDocument")
        if final_document:
            content += (
                "\n\n"
                f"// {'═' * 79}\n"
                "// GENERATED LESSON PLAN (Markdown)\n"
                f"// {'═' * 79}\n"
                "/*\n"
                f"{final_document}\n"
                "*/\n"
            )

        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            path = self.logs_dir / filename
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.info(f"Generation log skipped: {e}")
            return ""

        logger.info(f"Generation log saved: {filename}")
        return str(path)

    def summary(self) -> str:
        """Human-readable run summary for the server log."""
        summary = self.log.get("summary")
        lines = [
            SEPARATOR,
            f"GENERATION SUMMARY - {self.log['sessionId']}",
            SEPARATOR,
            f"Status: {'SUCCESS' if self.log['success'] else 'FAILED'}",
            f"Total Duration: {summary['totalDurationFormatted'] if summary else 'N/A'}",
            "",
            "STEPS:",
        ]

        for step in self.log["steps"]:
            lines.append(f"  {step['stepNumber']}. {step['stepName']}")
            lines.append(f"     Duration: {step['durationSeconds']:.2f}s")
            usage = step.get("tokenUsage")
            if usage:
                lines.append(
                    f"     Tokens: {usage['inputTokens']:,} in + {usage['outputTokens']:,} out"
                    f" = {usage['totalTokens']:,} total"
                )
                lines.append(f"     Cost: ${usage['estimatedCostUSD']:.4f} ({usage['estimatedCostSEK']:.2f} kr)")
            if step.get("error"):
                lines.append(f"     Error: {step['error']}")
            lines.append("")

        if summary:
            lines.append("TOTALS:")
            lines.append(f"  Total Tokens: {summary['totalTokens']['total']:,}")
            lines.append(f"  Input: {summary['totalTokens']['input']:,}")
            lines.append(f"  Output: {summary['totalTokens']['output']:,}")
            lines.append(f"  Estimated Cost: {summary['costFormattedUSD']} ({summary['costFormattedSEK']})")

        lines.append(SEPARATOR)
        return "\n".join(lines)
