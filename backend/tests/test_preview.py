from digest.services.preview import extractive_summary


def test_takes_first_three_sentences():
    text = "One. Two! Three? Four. Five."
    assert extractive_summary(text) == "One. Two! Three?"


def test_respects_custom_sentence_count():
    assert extractive_summary("A b c. D e f. G h i.", max_sentences=1) == "A b c."


def test_text_without_terminal_punctuation_is_returned_whole():
    assert extractive_summary("no punctuation here") == "no punctuation here"


def test_trailing_fragment_without_punctuation_is_dropped():
    assert extractive_summary("First sentence. trailing words") == "First sentence."


def test_collapses_whitespace_inside_sentences():
    text = "Bone Loss\n\nAstronauts   lose bone. They recover slowly."
    assert extractive_summary(text) == "Bone Loss Astronauts lose bone. They recover slowly."


def test_empty_text():
    assert extractive_summary("") == ""
