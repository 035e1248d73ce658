"""
Syntax-highlighted HTML rendering for text pastes.
"""
import html

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound


def _lexer_for(language: str):
    try:
        return get_lexer_by_name(language)
    except ClassNotFound:
        return TextLexer()


def render_highlighted(code: str, language: str) -> str:
    """Render ``code`` as a full HTML page; unknown languages fall back to plain text."""
    formatter = HtmlFormatter(
        linenos="inline",
        anchorlinenos=True,
        lineanchors="L",
        style="github-dark",
        cssclass="highlight",
    )
    body = pygments_highlight(code, _lexer_for(language), formatter)
    styles = formatter.get_style_defs(".highlight")
    title = html.escape(language)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - pastebox</title>
    <style>
        body {{
            margin: 0;
            background: #0d1117;
            color: #e6edf3;
        }}
        pre {{
            font-family: "JetBrains Mono", "Courier New", monospace;
            font-size: 14px;
            line-height: 1.4;
            margin: 0;
            padding: 16px;
        }}
        .linenos a {{
            color: #6e7681;
            text-decoration: none;
            user-select: none;
        }}
        .linenos a:hover {{
            color: #848d97;
        }}
        {styles}
    </style>
</head>
<body>
{body}
</body>
</html>"""
