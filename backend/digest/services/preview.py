import re

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


def extractive_summary(text: str, max_sentences: int = 3) -> str:
    """First ``max_sentences`` sentences of ``text``, split naively on .!?"""
    if not text:
        return ""
    sentences = _SENTENCE.findall(text) or [text]
    return " ".join(" ".join(sentence.split()) for sentence in sentences[:max_sentences])
