from __future__ import annotations

from textwrap import dedent

from atlas_gateway.schemas import ScriptRequest

PODCAST_RULES = dedent(
    """\
    STRICT RULES:
    - Output ONLY a JSON object with a 'script' key.
    - The value of 'script' MUST be an array of objects.
    - Each object: { "speaker": "Alex" | "Sam", "text": "..." }
    - Make the conversation highly technical, detailed, and insightful.
    - Sam should explain concepts using "first principles".
    - Alex should ask follow-up questions that probe deeper into "why" and "how".
    - 8-12 exchanges total (concise and high-impact).
    - Do not be generic; use specific examples and data points.
    - Valid JSON object/array only."""
)


def build_podcast_prompt(task: ScriptRequest) -> str:
    if task.mode == "syllabus" and task.syllabus is not None:
        source = (
            f"SUBJECT: {task.syllabus.subject}\n"
            f"TOPIC: {task.syllabus.topic}\n"
            f"LEVEL: {task.syllabus.level}"
        )
    else:
        topics = task.topics
        if isinstance(topics, list):
            topics = ", ".join(topics)
        source = (
            f"CONTENT: {task.content or 'No content provided'}\n"
            f"FOCAL POINTS: {topics or 'General overview'}"
        )

    return (
        "You are an expert podcast script writer.\n"
        "Create a highly engaging dialogue between Alex (beginner/curious) "
        "and Sam (expert/calm).\n\n"
        f"{source}\n\n"
        f"{PODCAST_RULES}"
    )
