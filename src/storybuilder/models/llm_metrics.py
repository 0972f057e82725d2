"""LLM usage metrics tracking for story generation runs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class LLMCallMetrics:
    """Metrics for a single call to the generation endpoint."""

    # Token counts (from response.usage when the gateway reports it)
    tokens_in: int = 0  # prompt_tokens
    tokens_out: int = 0  # completion_tokens
    tokens_total: int = 0

    # Call metadata
    model: str = ""
    call_purpose: str = ""  # "generation" | "repair"
    success: bool = False
    error: Optional[str] = None

    # Timing
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Ensure tokens_total is calculated if not provided."""
        if self.tokens_total == 0 and (self.tokens_in or self.tokens_out):
            self.tokens_total = self.tokens_in + self.tokens_out

    def to_json(self) -> dict:
        return {
            "call_purpose": self.call_purpose,
            "model": self.model,
            "tokens_in": self.tokens_in,
            "tokens_out": self.tokens_out,
            "tokens_total": self.tokens_total,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class RunMetrics:
    """Aggregated metrics for one model run (generation plus optional repair)."""

    run_id: str = ""
    model_id: str = ""
    calls: list[LLMCallMetrics] = field(default_factory=list)

    def add_call(self, call: Optional[LLMCallMetrics]) -> None:
        """Add a call to the metrics collection."""
        if call is not None:
            self.calls.append(call)

    @property
    def total_tokens_in(self) -> int:
        return sum(c.tokens_in for c in self.calls)

    @property
    def total_tokens_out(self) -> int:
        return sum(c.tokens_out for c in self.calls)

    @property
    def total_tokens(self) -> int:
        return self.total_tokens_in + self.total_tokens_out

    @property
    def total_duration_ms(self) -> int:
        return sum(c.duration_ms for c in self.calls)

    @property
    def repair_used(self) -> bool:
        return any(c.call_purpose == "repair" for c in self.calls)

    def to_json(self) -> dict:
        """Export run metrics as a JSON-ready dict for the debug block."""
        return {
            "total_tokens_in": self.total_tokens_in,
            "total_tokens_out": self.total_tokens_out,
            "total_tokens": self.total_tokens,
            "total_duration_ms": self.total_duration_ms,
            "repair_used": self.repair_used,
            "calls": [c.to_json() for c in self.calls],
        }

    def to_markdown(self) -> str:
        """Format metrics as markdown for the session report."""
        lines = [
            f"### LLM Metrics: {self.model_id} ({self.run_id[:8]})",
            "",
            "| Metric | Value |",
            "|--------|-------|",
            f"| Total Tokens In | {self.total_tokens_in:,} |",
            f"| Total Tokens Out | {self.total_tokens_out:,} |",
            f"| Total Tokens | {self.total_tokens:,} |",
            f"| Repair Used | {'Yes' if self.repair_used else 'No'} |",
            "",
            "| # | Purpose | Tokens In | Tokens Out | Status | Duration |",
            "|---|---------|-----------|------------|--------|----------|",
        ]

        for i, call in enumerate(self.calls, 1):
            status = "OK" if call.success else "FAILED"
            duration_str = f"{call.duration_ms / 1000:.1f}s" if call.duration_ms > 0 else "N/A"
            lines.append(
                f"| {i} | {call.call_purpose} | {call.tokens_in:,} | "
                f"{call.tokens_out:,} | {status} | {duration_str} |"
            )

        failed_calls = [c for c in self.calls if c.error]
        if failed_calls:
            lines.extend(["", "**Errors:**", ""])
            for call in failed_calls:
                lines.append(f"- {call.call_purpose}: {call.error}")

        return "\n".join(lines)
