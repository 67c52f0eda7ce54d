"""
Plain text to Markdown heuristics for model output that came back without markup.
"""

HEADER_MAX_LENGTH = 50


def looks_like_markdown(text: str) -> bool:
    return '#' in text or '```' in text


def format_as_markdown(text: str) -> str:
    """
    Promote shouting lines to `##` headers and label lines to `###` subheaders.
    Text that already carries a header or a code fence is returned untouched,
    which also makes a second pass over formatted output a no-op.
    """
    if not text or looks_like_markdown(text):
        return text

    lines = text.split('\n')
    formatted = []

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()

        if not line:
            formatted.append('')
            continue

        previous_blank = i > 0 and not lines[i - 1].strip()
        if (line.upper() == line and len(line) < HEADER_MAX_LENGTH
                and not line.endswith(':') and previous_blank):
            formatted.append(f"## {line}")
            continue

        if line.endswith(':') and len(line) < HEADER_MAX_LENGTH:
            formatted.append(f"### {line}")
            continue

        # List items ("1 ", "- ", "* ") and regular text pass through
        formatted.append(line)

    return '\n'.join(formatted)
