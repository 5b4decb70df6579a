"""
Prompt Templates for the RadioCare chatbot.

Builds the context-selection prompt and the reply-generation prompt.
"""

from typing import Iterable, Mapping, Sequence, Union

from contexts.catalog import ContextDefinition


class PromptTemplates:
    """
    Prompt templates for context selection and reply generation.

    The per-context system prompts live in the context catalog; this class
    only frames them with conversation history and the patient's message.
    """

    USER_TEMPLATES = {
        "context_selection": """You are routing messages for a radiotherapy patient support assistant.

Available contexts:
{context_list}

Recent conversation:
{history}

Patient's latest message:
"{message}"

Reply with exactly one context key from the list above and nothing else.""",

        "response_with_history": """Here are some previous exchanges:
{history}

---

Here is the patient's latest message:
"{message}\"""",

        "response": """Here is the patient's latest message:
"{message}\"""",
    }

    NO_HISTORY = "(no previous messages)"

    @staticmethod
    def format_transcript(turns: Sequence) -> str:
        """
        Flatten conversation turns into a speaker/reply transcript.

        Args:
            turns: ConversationTurn-like objects with ``user_message`` and
                ``bot_message`` attributes, oldest first

        Returns:
            One "User:" and one "Bot:" line per turn
        """
        return "\n".join(
            f"User: {turn.user_message}\nBot: {turn.bot_message}" for turn in turns
        )

    @classmethod
    def build_selection_prompt(
        cls,
        contexts: Union[Mapping[str, ContextDefinition], Iterable[ContextDefinition]],
        message: str,
        history: str = "",
    ) -> str:
        """
        Build the prompt asking the model to pick one context key.

        Args:
            contexts: Catalog contexts (mapping or iterable of definitions)
            message: Patient's latest message
            history: Flattened recent transcript

        Returns:
            Formatted selection prompt
        """
        definitions = contexts.values() if isinstance(contexts, Mapping) else contexts
        context_list = "\n".join(f"- {ctx.key}: {ctx.description}" for ctx in definitions)
        return cls.USER_TEMPLATES["context_selection"].format(
            context_list=context_list,
            history=history or cls.NO_HISTORY,
            message=message,
        )

    @classmethod
    def build_response_prompt(cls, message: str, history: str = "") -> str:
        """
        Build the user-side prompt for reply generation.

        The selected context's system prompt is sent separately as the
        system instruction.
        """
        if history:
            return cls.USER_TEMPLATES["response_with_history"].format(
                history=history,
                message=message,
            )
        return cls.USER_TEMPLATES["response"].format(message=message)
