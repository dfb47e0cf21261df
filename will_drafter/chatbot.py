"""
Templated legal Q&A chatbot using Google Generative AI (Gemini).

The query is validated, placed into a fixed prompt and sent to the hosted
model. Failures never reach the caller: invalid input and backend errors
both come back as fixed apology responses.

Uses LLM_API_KEY and LLM_MODEL from the app config (falling back to the
environment outside an application context).
"""
import logging
import os
from typing import Callable, Dict, Optional

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 1
MAX_QUERY_LENGTH = 500
DEFAULT_MODEL = "gemini-2.0-flash"

INVALID_INPUT_RESPONSE = (
    "Invalid input provided. Please ensure your query is not empty and within reasonable length."
)
UNEXPECTED_ERROR_RESPONSE = (
    "An unexpected error occurred while processing your request. Please try again later."
)

LEGAL_CHATBOT_PROMPT = (
    "You are a legal chatbot designed to answer basic legal questions and guide users "
    "to the appropriate legal services offered by the firm.\n\n"
    "If the question is outside your capabilities, direct the user to contact the firm "
    "for further assistance."
)

WILL_KNOWLEDGE_BASE = """
Q: What is a Will?
A: A document whereby a Testator expresses his/her desire as to the disposal of his/her
properties after his/her death.

Q: What makes a valid Will?
A: The Testator must be at least 18 years of age and of sound mind, free of undue
influence, and must sign the Will in the presence of at least two witnesses who also sign.

Q: Who can be a witness?
A: Two adults of sound mind, preferably not beneficiaries under the Will. They do not need
to know what the Will contains.

Q: Is appointing an Executor compulsory?
A: No, but it is advisable to appoint an independent Executor to administer the property.

Q: Is registration of a Will required?
A: Registration with the Sub-Registrar is optional. It adds evidentiary weight and
safekeeping but no extra legal force. No stamp duty is leviable on a Will.

Q: Is Probate compulsory?
A: For Christians, yes. For Muslims, no. For Hindus (including Sikhs, Buddhists, Jains) and
Parsis, only where the Will is made, or the immovable property is situated, within the
presidency towns of Bombay, Calcutta and Madras.

Q: What happens to an existing Will if I make a fresh one?
A: The earlier Will(s) stand cancelled. A Codicil can alter or add to a Will instead.

Q: Does nomination replace a Will?
A: No. A nominee holds the asset as trustee for the legal heirs; to bequeath it to the
nominee a Will is still needed.

Q: Are there limits for Mohammedans?
A: Sunni and Shia Mohammedans can bequeath only 1/3rd of their estate by Will; bequests to
heirs, or beyond 1/3rd, need the consent of the other heirs.

Q: Which laws govern succession?
A: The Indian Succession Act, 1925, the Indian Registration Act, 1908, the Hindu
Succession Act, 1956, and Muslim personal law.
""".strip()

WILL_ASSISTANT_PROMPT = (
    "You are the iWills.in assistant. Answer questions about creating a Will in India "
    "using only the knowledge base below. If the answer is not covered, say so and suggest "
    "contacting iWills.in for an offline consultation. Do not give personalised legal advice.\n\n"
    "Knowledge base:\n" + WILL_KNOWLEDGE_BASE
)

# (system_prompt, user_text) -> response text
ChatBackend = Callable[[str, str], str]


def _get_config(key: str, default: Optional[str] = None) -> Optional[str]:
    if has_app_context():
        return current_app.config.get(key) or default
    return os.environ.get(key) or default


def gemini_backend(system_prompt: str, user_text: str) -> str:
    """Synchronous chat completion using Google Generative AI."""
    import google.generativeai as genai
    api_key = _get_config("LLM_API_KEY")
    if not api_key:
        raise ValueError("LLM_API_KEY not found in configuration")
    genai.configure(api_key=api_key)
    model = _get_config("LLM_MODEL", DEFAULT_MODEL)
    model_name = model if model and "gemini" in model else DEFAULT_MODEL
    gemini = genai.GenerativeModel(
        model_name,
        system_instruction=system_prompt,
    )
    response = gemini.generate_content(user_text)
    if not response or not response.text:
        raise ValueError("Empty response from LLM")
    return response.text


def is_valid_query(query) -> bool:
    """A query is a string of 1 to 500 characters."""
    return isinstance(query, str) and MIN_QUERY_LENGTH <= len(query) <= MAX_QUERY_LENGTH


def _answer(system_prompt: str, query, backend: Optional[ChatBackend], name: str) -> Dict[str, str]:
    if not is_valid_query(query):
        logger.warning("Invalid input to %s: %r", name, type(query).__name__)
        return {"response": INVALID_INPUT_RESPONSE}

    try:
        text = (backend or gemini_backend)(system_prompt, query)
    except Exception:
        logger.exception("Error in %s", name)
        return {"response": UNEXPECTED_ERROR_RESPONSE}

    if not isinstance(text, str) or not text.strip():
        logger.error("Empty response in %s", name)
        return {"response": UNEXPECTED_ERROR_RESPONSE}
    return {"response": text}


def ask(query, backend: Optional[ChatBackend] = None) -> Dict[str, str]:
    """
    Answer a basic legal question.

    Args:
        query: The user's question
        backend: Chat completion callable; defaults to Gemini

    Returns:
        {"response": str}; never raises
    """
    return _answer(LEGAL_CHATBOT_PROMPT, query, backend, "legal chatbot")


def ask_will_assistant(query, backend: Optional[ChatBackend] = None) -> Dict[str, str]:
    """Answer a question about making a Will in India from the FAQ knowledge base."""
    return _answer(WILL_ASSISTANT_PROMPT, query, backend, "will assistant")
