"""
Review pipeline - LangGraph state machine.

Linear flow with a single fork at entry:

    list mode:   START -> list_pull_requests -> END
    review mode: START -> fetch_metadata -> fetch_diff -> parse_diff -> detect
                       -> compose -> fetch_comments -> render -> END

Only the GitHub fetch stages can fail the run (they route to ``failed``).
Every later stage degrades into an optional field of the report.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph

import config as _config  # noqa: F401 - ensures env & logging are initialised
import github_client
from detector import DetectorConfig, detect
from diff_parser import DiffHunk, parse_diff, summarize_files
from errors import FatalFetchError, RubberError
from github_client import PRComment, PRMetadata, PRSummary
from models import Finding, PullRequestRef, ReviewPersona
from report import (
    ReviewReport,
    build_report,
    render_pull_request_list,
    render_report,
)
from reviewer import Complete, compose_review

logger = logging.getLogger(__name__)


# =============================================================================
# COLLABORATORS
# =============================================================================
@dataclass
class PipelineServices:
    """External collaborators, swappable for tests."""

    list_pull_requests: Callable[[PullRequestRef], list[PRSummary]] = (
        github_client.list_pull_requests
    )
    fetch_pr_metadata: Callable[[PullRequestRef], PRMetadata] = (
        github_client.fetch_pr_metadata
    )
    fetch_raw_diff: Callable[[PullRequestRef], str] = github_client.fetch_raw_diff
    fetch_pr_comments: Callable[[PullRequestRef], list[PRComment]] = (
        github_client.fetch_pr_comments
    )
    complete: Complete | None = None  # None = Gemini
    detector_config: DetectorConfig = field(default_factory=DetectorConfig)
    max_diff_chars: int = _config.MAX_DIFF_CHARS


# =============================================================================
# STATE DEFINITION
# =============================================================================
@dataclass
class PipelineState:
    """
    State that flows through the review graph.

    Each node reads what it needs and returns updates to specific fields.
    """

    # Input (required)
    ref: PullRequestRef
    persona: ReviewPersona = ReviewPersona.DEFAULT

    # Intermediate data (populated by nodes)
    metadata: PRMetadata | None = None
    diff: str = ""
    hunks: list[DiffHunk] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    narrative: str | None = None
    comments: list[PRComment] | None = None
    pull_requests: list[PRSummary] = field(default_factory=list)

    # Output
    report: ReviewReport | None = None
    output: str = ""
    error: FatalFetchError | None = None
    stages: list[str] = field(default_factory=list)  # visited nodes, in order


@dataclass(frozen=True)
class PipelineOutcome:
    """What the CLI gets back from a successful run."""

    mode: str  # "list" or "review"
    output: str
    report: ReviewReport | None = None
    pull_requests: list[PRSummary] = field(default_factory=list)


def _get(state, key: str):
    # LangGraph may pass state as dict or dataclass
    return state.get(key) if isinstance(state, dict) else getattr(state, key)


def _visit(state: PipelineState, stage: str) -> list[str]:
    return list(state.stages) + [stage]


# =============================================================================
# NODE FUNCTIONS
# =============================================================================
def _make_nodes(services: PipelineServices) -> dict[str, Callable]:
    """Build node callables bound to *services*."""

    def list_pull_requests(state: PipelineState) -> dict:
        """List mode: fetch recent PRs and render the table."""
        logger.info("Listing pull requests for %s...", state.ref.slug)
        try:
            prs = services.list_pull_requests(state.ref)
        except FatalFetchError as e:
            return {"error": e, "stages": _visit(state, "list_pull_requests")}

        return {
            "pull_requests": prs,
            "output": render_pull_request_list(state.ref, prs),
            "stages": _visit(state, "list_pull_requests"),
        }

    def fetch_metadata(state: PipelineState) -> dict:
        logger.info("Fetching PR metadata for %s...", state.ref)
        try:
            metadata = services.fetch_pr_metadata(state.ref)
        except FatalFetchError as e:
            return {"error": e, "stages": _visit(state, "fetch_metadata")}

        logger.info("PR: %s by %s", metadata.title, metadata.author)
        return {"metadata": metadata, "stages": _visit(state, "fetch_metadata")}

    def fetch_diff(state: PipelineState) -> dict:
        logger.info("Fetching PR diff...")
        try:
            diff = services.fetch_raw_diff(state.ref)
        except FatalFetchError as e:
            return {"error": e, "stages": _visit(state, "fetch_diff")}

        return {"diff": diff, "stages": _visit(state, "fetch_diff")}

    def parse(state: PipelineState) -> dict:
        logger.info("Parsing diff...")
        try:
            hunks = parse_diff(state.diff)
        except Exception as e:
            logger.warning("Diff could not be parsed, continuing without hunks: %s", e)
            hunks = []

        logger.info("Parsed %d hunk(s)", len(hunks))
        return {"hunks": hunks, "stages": _visit(state, "parse_diff")}

    def run_detector(state: PipelineState) -> dict:
        findings = detect(state.hunks, services.detector_config)
        return {"findings": findings, "stages": _visit(state, "detect")}

    def compose(state: PipelineState) -> dict:
        narrative = compose_review(
            state.ref,
            state.metadata,
            state.diff,
            state.findings,
            persona=state.persona,
            complete=services.complete,
            max_chars=services.max_diff_chars,
        )
        return {"narrative": narrative, "stages": _visit(state, "compose")}

    def fetch_comments(state: PipelineState) -> dict:
        try:
            comments = services.fetch_pr_comments(state.ref)
        except RubberError as e:
            logger.warning("Could not fetch comments for %s: %s", state.ref, e)
            comments = None

        return {"comments": comments, "stages": _visit(state, "fetch_comments")}

    def render(state: PipelineState) -> dict:
        report = build_report(
            state.ref,
            state.persona,
            state.metadata,
            state.findings,
            state.narrative,
            files=summarize_files(state.diff, state.hunks),
            comments=state.comments,
        )
        return {
            "report": report,
            "output": render_report(report),
            "stages": _visit(state, "render"),
        }

    def failed(state: PipelineState) -> dict:
        logger.error("Fetch failed for %s: %s", state.ref, state.error)
        return {"stages": _visit(state, "failed")}

    return {
        "list_pull_requests": list_pull_requests,
        "fetch_metadata": fetch_metadata,
        "fetch_diff": fetch_diff,
        "parse_diff": parse,
        "detect": run_detector,
        "compose": compose,
        "fetch_comments": fetch_comments,
        "render": render,
        "failed": failed,
    }


# =============================================================================
# DECISION FUNCTIONS (for conditional edges)
# =============================================================================
def route_entry(state: PipelineState) -> str:
    """List mode when no PR number was given, review mode otherwise."""
    ref = _get(state, "ref")
    return "list_pull_requests" if ref.number is None else "fetch_metadata"


def _continue_unless_failed(next_node: str) -> Callable[[PipelineState], str]:
    def decide(state: PipelineState) -> str:
        return "failed" if _get(state, "error") is not None else next_node

    return decide


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================
def build_pipeline_graph(services: PipelineServices | None = None) -> StateGraph:
    """Build the review workflow graph."""
    services = services or PipelineServices()
    graph = StateGraph(PipelineState)

    for name, node in _make_nodes(services).items():
        graph.add_node(name, node)

    # Entry fork
    graph.add_conditional_edges(
        START,
        route_entry,
        {
            "list_pull_requests": "list_pull_requests",
            "fetch_metadata": "fetch_metadata",
        },
    )

    # List mode
    graph.add_conditional_edges(
        "list_pull_requests",
        _continue_unless_failed(END),
        {END: END, "failed": "failed"},
    )

    # Fatal stages
    graph.add_conditional_edges(
        "fetch_metadata",
        _continue_unless_failed("fetch_diff"),
        {"fetch_diff": "fetch_diff", "failed": "failed"},
    )
    graph.add_conditional_edges(
        "fetch_diff",
        _continue_unless_failed("parse_diff"),
        {"parse_diff": "parse_diff", "failed": "failed"},
    )

    # Degrading stages
    graph.add_edge("parse_diff", "detect")
    graph.add_edge("detect", "compose")
    graph.add_edge("compose", "fetch_comments")
    graph.add_edge("fetch_comments", "render")
    graph.add_edge("render", END)
    graph.add_edge("failed", END)

    return graph


def create_pipeline(services: PipelineServices | None = None):
    """Create and compile the review pipeline."""
    return build_pipeline_graph(services).compile()


def run_pipeline(
    ref: PullRequestRef,
    persona: ReviewPersona = ReviewPersona.DEFAULT,
    services: PipelineServices | None = None,
) -> PipelineOutcome:
    """
    Run one review (or list) for *ref*.

    Returns:
        PipelineOutcome with the rendered output

    Raises:
        FatalFetchError: the PR or repository could not be fetched
    """
    pipeline = create_pipeline(services)
    final_state = pipeline.invoke(PipelineState(ref=ref, persona=persona))

    error = final_state.get("error")
    if error is not None:
        raise error

    logger.info("Pipeline stages: %s", " -> ".join(final_state.get("stages", [])))

    if ref.is_list_mode:
        return PipelineOutcome(
            mode="list",
            output=final_state.get("output", ""),
            pull_requests=final_state.get("pull_requests", []),
        )
    return PipelineOutcome(
        mode="review",
        output=final_state.get("output", ""),
        report=final_state.get("report"),
    )
