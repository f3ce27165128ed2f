"""Markdown formatting utilities for catalogues and run summaries."""

from ..models.catalogue import Catalogue, FragmentKind
from ..models.conditions import describe_condition
from ..models.run_state import RunSummary


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """
    Format rows as a Markdown table.

    Pipe characters inside cells are escaped.
    """
    def cell(value: str) -> str:
        return str(value).replace("|", "\\|").replace("\n", " ")

    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("---" for _ in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(cell(v) for v in row) + " |")
    return "\n".join(lines)


def render_catalogue_markdown(catalogue: Catalogue) -> str:
    """
    Render a catalogue as a Markdown rules document.

    Lists every question (with its gate and accepted answers) and every
    feature (with its condition and the fragments it contributes).

    Args:
        catalogue: Loaded catalogue

    Returns:
        Markdown text
    """
    parts = [f"# {catalogue.title or catalogue.name}", ""]
    parts.append(f"Catalogue `{catalogue.name}` version {catalogue.version}, target document `{catalogue.document}`.")
    if catalogue.description:
        parts += ["", catalogue.description.strip()]

    parts += ["", "## Questions", ""]
    for number, question in enumerate(catalogue.questions, start=1):
        parts.append(f"### {number}. `{question.key}`")
        parts.append("")
        parts.append(question.prompt)
        if question.help:
            parts += ["", f"> {question.help.strip()}"]
        parts.append("")
        if question.gate is not None:
            parts.append(f"- Asked only when: {describe_condition(question.gate)}")
        if question.options:
            kind = "one or more of" if question.multiple else "one of"
            choices = ", ".join(f"`{o.value}`" for o in question.options)
            parts.append(f"- Answer: {kind} {choices}")
        elif question.pattern:
            parts.append(f"- Answer: free text matching `{question.pattern}`")
        else:
            parts.append("- Answer: free text")
        parts.append("")

    parts += ["## Features", ""]
    for feature in catalogue.features:
        parts.append(f"### {feature.name}")
        parts.append("")
        if feature.description:
            parts += [feature.description.strip(), ""]
        parts.append(f"Selected when: {describe_condition(feature.when)}")
        parts.append("")

        rows = [[f.kind.value, f"`{f.target_template()}`"] for f in feature.fragments]
        parts.append(format_table(["Kind", "Target"], rows))
        parts.append("")

        for fragment in feature.fragments:
            if fragment.kind == FragmentKind.PROPERTY:
                continue
            language = "text" if fragment.kind == FragmentKind.FILE else "xml"
            parts += [f"```{language}", fragment.payload_template().strip("\n"), "```", ""]

    return "\n".join(parts).rstrip() + "\n"


def format_summary_markdown(summary: RunSummary) -> str:
    """
    Format a run summary as Markdown.

    Args:
        summary: Summary returned by WizardRun.finish()

    Returns:
        Markdown report
    """
    parts = [
        f"## Run summary: {summary.catalogue} v{summary.catalogue_version}",
        "",
        f"**State:** {summary.state.value}",
    ]
    if summary.error:
        parts.append(f"**Error:** {summary.error}")
    parts.append("")

    if summary.features:
        rows = []
        for outcome in summary.features:
            if not outcome.ops:
                rows.append([outcome.feature, outcome.status.value, "", ""])
            for op in outcome.ops:
                rows.append([outcome.feature, outcome.status.value, op.op.target, op.status.value])
        parts += ["### Features", "", format_table(["Feature", "Status", "Target", "Outcome"], rows), ""]

    if summary.answered:
        rows = [[key, value] for key, value in summary.answered.items()]
        parts += ["### Answers", "", format_table(["Question", "Answer"], rows), ""]

    if summary.artifacts:
        parts += ["### Files written", ""]
        parts += [f"- `{path}`" for path in summary.artifacts]
        parts.append("")

    return "\n".join(parts).rstrip() + "\n"
