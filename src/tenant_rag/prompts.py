"""System-prompt assembly for knowledge-grounded replies.

The retrieved context is appended only when it is non-empty; otherwise the
agent answers from its general instructions, and the guidelines tell it to
say so when the knowledge base has nothing relevant.
"""

from __future__ import annotations

from tenant_rag.models import AgentProfile

SYSTEM_PROMPT_TEMPLATE = """\
You are {name}, an AI assistant for customer support.

Personality and Tone: {tone}

Instructions: {instructions}

Guidelines:
- Always maintain the specified tone and personality
- Use the knowledge base information when relevant to answer questions
- If the knowledge base doesn't contain relevant information, acknowledge this and provide general helpful responses
- Be concise but thorough
- Always be helpful and professional"""

KNOWLEDGE_HEADER = "Relevant information from knowledge base:"


def build_system_prompt(profile: AgentProfile, context: str = "") -> str:
    """Render the system prompt for *profile*, grounded in *context* if any."""
    prompt = SYSTEM_PROMPT_TEMPLATE.format(
        name=profile.name,
        tone=profile.tone,
        instructions=profile.instructions,
    )
    if context:
        prompt += f"\n\n{KNOWLEDGE_HEADER}\n{context}"
    return prompt
