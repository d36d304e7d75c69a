"""Gap cluster summarization chain.

Asks the generator for a short title and description of a cluster of
unanswered questions and feedback. Malformed output never fails the run:
the first sample text becomes the title.
"""

from typing import Any

from app.core.gap_clustering import SignalCluster
from app.core.generator import generate_json
from app.core.logging import get_logger
from app.core.schemas_gaps import MAX_SAMPLE_FEEDBACK, MAX_SAMPLE_QUESTIONS, GapSummary

logger = get_logger(__name__)

FALLBACK_DESCRIPTION = "Cluster of related questions and feedback."
MAX_TITLE_CHARS = 80


def sample_texts(cluster: SignalCluster) -> tuple[list[str], list[str]]:
    """Bounded member samples: up to 8 questions and 5 feedback messages."""
    questions = [q.text for q in cluster.questions[:MAX_SAMPLE_QUESTIONS]]
    feedback = [f.text for f in cluster.feedback[:MAX_SAMPLE_FEEDBACK]]
    return questions, feedback


def fallback_summary(cluster: SignalCluster) -> GapSummary:
    first_text = cluster.members[0].text if cluster.members else ""
    return GapSummary(title=first_text[:MAX_TITLE_CHARS], description=FALLBACK_DESCRIPTION)


def build_summary_prompt(questions: list[str], feedback: list[str]) -> str:
    sections = []
    if questions:
        question_list = "\n".join(f"{i + 1}. {q}" for i, q in enumerate(questions))
        sections.append(f"Questions our WMS SOPs could not answer well:\n{question_list}")
    if feedback:
        feedback_list = "\n".join(f"{i + 1}. {f}" for i, f in enumerate(feedback))
        sections.append(f"Related operator feedback:\n{feedback_list}")

    evidence = "\n\n".join(sections)
    return f"""These signals from warehouse operators point at the same missing piece of procedure knowledge. Generate a short title (under 80 chars) and a 1-2 sentence description summarizing the knowledge gap they represent.

{evidence}

Respond in JSON: {{"title": "...", "description": "..."}}"""


def _coerce_summary(value: Any, fallback: GapSummary) -> GapSummary:
    if not isinstance(value, dict):
        return fallback

    title = value.get("title")
    if not isinstance(title, str) or not title.strip():
        return fallback

    description = value.get("description")
    if not isinstance(description, str) or not description.strip():
        description = fallback.description

    return GapSummary(title=title.strip(), description=description.strip())


async def summarize_cluster(cluster: SignalCluster) -> GapSummary:
    """
    Title and describe one cluster.

    Returns:
        GapSummary; the fallback summary when the generator output is unusable

    Raises:
        anthropic.APIError: Generator transport failures propagate
    """
    questions, feedback = sample_texts(cluster)
    fallback = fallback_summary(cluster)

    output = await generate_json(build_summary_prompt(questions, feedback), fallback=None, max_tokens=500)
    summary = _coerce_summary(output.value, fallback)

    if summary is fallback:
        logger.warning(f"Using fallback summary for cluster of {cluster.total} signals")
    return summary
