from __future__ import annotations

import re

DOC_NAME_PATTERN = re.compile(r"\b[\w\-_]+\.(doc|docx|pdf|txt|xlsx|pptx|csv)\b", re.IGNORECASE)
FILE_URL_PATTERN = re.compile(r"(?:file\s*url|url|link)\s+(?:of|for)?\s*(.+)", re.IGNORECASE)
UNDERSCORE_TOKEN_PATTERN = re.compile(r"\b\w+_\w+")
UNDERSCORE_NAME_PATTERN = re.compile(r"\b([A-Za-z0-9]+(?:_[A-Za-z0-9]+)+)\b")
SEPARATOR_PATTERN = re.compile(r"[_-]")
GREETING_PATTERN = re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening)\b")

URL_REQUEST_PHRASES = ("file url", "link of", "url of")
LOOKUP_INTENT_PHRASES = ("tell me about", "what is", "find")
NAME_PREFIXES = ("tell me about", "what is", "find", "about", "url of", "file url of")

STOP_WORDS = frozenset(
    """
    a an the and or but is are was were be been being have has had do does did will would could
    should may might must shall can need dare ought used to of in for on with at by from as into
    through during before after above below between under again further then once here there when
    where why how all each few more most other some such no nor not only own same so than too very
    just also now i me my myself we our ours ourselves you your yours yourself he him his himself
    she her hers herself it its itself they them their theirs themselves what which who whom this
    that these those am about against any because both if while until up down out off over get
    give go find file document documents files want please help show tell
    """.split()
)


def expand_separators(text: str) -> str:
    return SEPARATOR_PATTERN.sub(" ", text)


def with_separator_variant(name: str) -> str:
    expanded = expand_separators(name)
    return name if expanded == name else f"{name} {expanded}"


def is_greeting(text: str) -> bool:
    return GREETING_PATTERN.match(text.strip().lower()) is not None


def is_help_request(text: str) -> bool:
    return text.strip().lower() in {"help", "?"}


def is_status_request(text: str) -> bool:
    lowered = text.strip().lower()
    return lowered == "status" or "how many documents" in lowered


def preprocess_query(text: str) -> str:
    """Append space-separated variants of file names and rewrite "url of X" requests to X."""
    processed = text
    for match in DOC_NAME_PATTERN.finditer(text):
        name = match.group(0)
        expanded = expand_separators(name)
        if expanded != name:
            processed += f" {expanded}"

    url_match = FILE_URL_PATTERN.search(text)
    if url_match:
        target = url_match.group(1).strip()
        processed = f"{target} {expand_separators(target)}"
    return processed


def is_named_document_query(text: str) -> bool:
    if DOC_NAME_PATTERN.search(text):
        return True
    lowered = text.lower()
    if any(phrase in lowered for phrase in URL_REQUEST_PHRASES):
        return True
    if any(phrase in lowered for phrase in LOOKUP_INTENT_PHRASES):
        return UNDERSCORE_TOKEN_PATTERN.search(text) is not None
    return False


def extract_document_name(text: str) -> str:
    match = DOC_NAME_PATTERN.search(text)
    if match:
        return match.group(0)

    url_match = FILE_URL_PATTERN.search(text)
    if url_match:
        return url_match.group(1).strip()

    underscore = UNDERSCORE_NAME_PATTERN.search(text)
    if underscore:
        return underscore.group(1)

    lowered = text.lower()
    for prefix in NAME_PREFIXES:
        idx = lowered.find(prefix)
        if idx >= 0:
            remainder = re.sub(r"[\"*]", "", text[idx + len(prefix) :].strip()).strip()
            if remainder:
                return remainder
    return text


def remove_stop_words(text: str) -> str:
    kept = [word for word in text.lower().split() if word not in STOP_WORDS]
    if not kept:
        return text
    return " ".join(kept)
