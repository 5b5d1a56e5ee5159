from datetime import datetime, timezone

from newswire.utils.text import html_to_text, parse_published, word_count


def test_html_to_text_drops_non_prose_elements():
    markup = """
    <div>
      <script>var x = 1;</script>
      <h2>Headline</h2>
      <p>First   paragraph.</p>
      <figure><img src="a.png"/><figcaption>Caption</figcaption></figure>
      <div class="share">Share this</div>
      <p>Second paragraph.</p>
    </div>
    """

    text = html_to_text(markup, drop_selectors=[".share"])

    assert text == "Headline\nFirst paragraph.\nSecond paragraph."


def test_html_to_text_blank_input():
    assert html_to_text("") == ""
    assert html_to_text("   ") == ""


def test_word_count():
    assert word_count("one two  three\nfour") == 4
    assert word_count("") == 0


def test_parse_published_variants():
    fallback = datetime(2025, 1, 1, tzinfo=timezone.utc)

    assert parse_published("2024-06-03T10:00:00Z", default=fallback) == datetime(2024, 6, 3, 10, tzinfo=timezone.utc)
    assert parse_published("June 3, 2024", default=fallback) == datetime(2024, 6, 3, tzinfo=timezone.utc)
    assert parse_published("", default=fallback) == fallback
    assert parse_published("no date here", default=fallback) == fallback
