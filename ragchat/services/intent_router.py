import json
from flask import current_app
from ragchat.errors import EmptyCompletion, UpstreamUnavailable

GREETING = "GREETING"
QUERY = "QUERY"

CLASSIFIER_INSTRUCTION = "You are an intent classifier for a document question-answering assistant. You only output JSON."

CLASSIFICATION_PROMPT = """Classify the user's message below into exactly one intent.

INTENTS:
- GREETING: the message is not a question about the document. This covers:
  1. Plain greetings (hi, hello, hey, yo)
  2. Time-based greetings (good morning, good afternoon, good evening)
  3. Misspelled or playful greetings (helo, hiii, heyyy, sup)
  4. Personal or emotional statements toward the assistant (thank you, you're great, I'm bored)
  5. Light small talk (how are you, what's up, who are you)
- QUERY: anything that asks for information, even if it also contains a greeting.

For GREETING, write a short friendly reply (one or two sentences) that matches the tone of
the message and invites the user to ask about the document. Do not answer any question and
do not invent facts about the document.
For QUERY, leave "response" empty.

RESPOND WITH VALID JSON ONLY (no markdown fences). Use this exact schema:
{{"intent": "GREETING" or "QUERY", "response": "..."}}

User message:
\"\"\"
{text}
\"\"\"
"""


def _first_json_object(raw):
    """Return the first JSON object embedded in raw, or None."""
    decoder = json.JSONDecoder()
    start = raw.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(raw, start)
        except json.JSONDecodeError:
            start = raw.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = raw.find("{", start + 1)
    return None


def classify(text, service, session_id=None):
    """
    Decide whether a message is small talk or a document query.

    Returns {"intent": GREETING, "reply": str} only when the model says GREETING
    and supplies a non-empty reply; every other outcome, including upstream
    failures, is {"intent": QUERY} so retrieval still runs.
    """
    try:
        raw = service.generate(CLASSIFICATION_PROMPT.format(text=text), CLASSIFIER_INSTRUCTION)
    except (UpstreamUnavailable, EmptyCompletion) as e:
        current_app.logger.warning(f"intent_router: classification failed for session {session_id}: {e}; treating as query")
        return {"intent": QUERY}

    result = _first_json_object(raw)
    if result is None:
        current_app.logger.warning(f"intent_router: no JSON object in classifier output for session {session_id}; treating as query")
        return {"intent": QUERY}

    intent = result.get("intent")
    reply = result.get("response")
    if isinstance(intent, str) and intent.strip().upper() == GREETING:
        if isinstance(reply, str) and reply.strip():
            return {"intent": GREETING, "reply": reply.strip()}
        current_app.logger.warning(f"intent_router: greeting without reply for session {session_id}; treating as query")

    return {"intent": QUERY}
