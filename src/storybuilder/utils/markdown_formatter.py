"""Markdown formatting for stories and run reports."""

from ..models.story import Run, Story


def format_story(story: Story) -> str:
    """
    Format a story as Markdown.

    Args:
        story: Story to render

    Returns:
        Markdown with title heading, description and a criteria checklist
    """
    title = story.title or "[Untitled]"
    description = story.description or "[No description]"
    lines = [f"## {title}", "", description, "", "**Acceptance Criteria:**", ""]

    if story.acceptance_criteria:
        lines.extend(f"- [ ] {ac}" for ac in story.acceptance_criteria)
    else:
        lines.append("_None_")

    return "\n".join(lines)


def format_run_summary(run: Run) -> str:
    """
    Format one run (story, DoR and evaluation) for the session report.

    Flags carrying explanations are listed with their reasons.
    """
    ev = run.eval
    dims = ev.dimensions
    review = "Yes" if ev.needs_review else "No"
    dor_status = "PASSED" if run.dor.passed else "FAILED"

    lines = [
        f"# Run {run.run_id[:8]}: {run.model_id}",
        "",
        format_story(run.final_story),
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| DoR | {dor_status} (iterations: {run.dor.iterations}) |",
        f"| Overall | {ev.overall:.1f} |",
        f"| Needs Review | {review} |",
        f"| Clarity | {dims.clarity} |",
        f"| Testability | {dims.testability} |",
        f"| Completeness | {dims.completeness} |",
        f"| Scope | {dims.scope} |",
        f"| Consistency | {dims.consistency} |",
    ]

    if run.dor.fail_reasons:
        lines.extend(["", "**DoR Fail Reasons:**", ""])
        lines.extend(f"- {reason}" for reason in run.dor.fail_reasons)

    if ev.flags:
        lines.extend(["", "**Flags:**", ""])
        explanations = ev.explanations or {}
        for flag in ev.flags:
            lines.append(f"- `{flag}`")
            for reason in explanations.get(flag, []):
                lines.append(f"  - {reason}")

    if ev.unclear_ac_indices:
        indices = ", ".join(str(i + 1) for i in ev.unclear_ac_indices)
        lines.extend(["", f"**Unclear criteria:** {indices}"])

    return "\n".join(lines)
