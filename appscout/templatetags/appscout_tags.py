from django import template

register = template.Library()


@register.filter
def label(value):
    """Human label for an enum value.  Usage: {{ r.traffic_level|label }} -> "Very High" """
    if not value:
        return ""
    return str(value).replace("_", " ").title()


@register.filter
def rule(char, width):
    """Repeat a character.  Usage: {{ "-"|rule:80 }}"""
    try:
        return str(char) * int(width)
    except (TypeError, ValueError):
        return ""


@register.filter
def score_bar(score, width=10):
    """Render a 0-100 score as a fixed-width bar: 70 -> "#######..." """
    try:
        score = max(0, min(100, int(score)))
        width = int(width)
    except (TypeError, ValueError):
        return ""
    filled = round(score * width / 100)
    return "#" * filled + "." * (width - filled)


@register.filter
def cell(value, width):
    """Left-justify any value to a column width, truncating long text."""
    text = str(value)
    width = int(width)
    if len(text) >= width:
        text = text[: width - 2] + "… " if width > 2 else text[:width]
    return text.ljust(width)
