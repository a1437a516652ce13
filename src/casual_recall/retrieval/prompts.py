"""
Prompt construction for retrieval-augmented generation.

Retrieved memories and the current context are rendered into a prompt that a
downstream language model call consumes.
"""

from typing import List, Optional

from casual_recall.models import Memory, MemoryContext

# Closing instructions appended to every augmented prompt
RESPONSE_GUIDELINES = """Please provide a response that:
- Takes into account the relevant memories
- Is consistent with past interactions
- Is personalized based on the context"""

DATE_FORMAT = "%b %d, %Y at %H:%M"


def build_augmented_prompt(
    query: str, memories: List[Memory], context: Optional[MemoryContext] = None
) -> str:
    """
    Render query, context and memories into one prompt.

    Args:
        query: The user's request
        memories: Retrieved memories, most relevant first
        context: Current situation (location, people, activity)

    Returns:
        Prompt text
    """
    sections = [f"Query: {query}"]

    if context is not None:
        lines = ["Current Context:"]
        if context.current_location is not None:
            lines.append(f"- Location: {context.current_location.place_name or 'Unknown'}")
        if context.recent_people:
            lines.append(f"- People: {', '.join(person.name for person in context.recent_people)}")
        if context.current_activity:
            lines.append(f"- Activity: {context.current_activity}")
        sections.append("\n".join(lines))

    if memories:
        lines = ["Relevant Memories:"]
        for position, memory in enumerate(memories, start=1):
            lines.append(f"{position}. [{memory.timestamp.strftime(DATE_FORMAT)}] {memory.content}")
            if memory.tags:
                lines.append(f"   Tags: {', '.join(memory.tags)}")
        sections.append("\n".join(lines))

    sections.append(RESPONSE_GUIDELINES)
    return "\n\n".join(sections)


def build_context_query(context: MemoryContext) -> str:
    """Describe the current context as a retrieval query (may be empty)."""
    parts = []
    if context.current_location is not None:
        parts.append(f"location: {context.current_location.place_name or ''}".strip())
    if context.recent_people:
        parts.append(f"with: {', '.join(person.name for person in context.recent_people)}")
    if context.current_activity:
        parts.append(f"activity: {context.current_activity}")
    return " ".join(parts)
