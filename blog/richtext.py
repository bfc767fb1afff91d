"""Rich text module.

Converts Prismic structured text (a list of typed blocks, each with a text
and character-offset spans) into plain text or sanitized HTML.
"""

import html
from typing import Optional
import nh3
import pydash as py_

BLOCK_TAGS = {
    "paragraph": "p",
    "preformatted": "pre",
    "heading1": "h1",
    "heading2": "h2",
    "heading3": "h3",
    "heading4": "h4",
    "heading5": "h5",
    "heading6": "h6",
}

LIST_TAGS = {
    "list-item": "ul",
    "o-list-item": "ol",
}

ALLOWED_TAGS = {
    "p",
    "pre",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "ul",
    "ol",
    "li",
    "strong",
    "em",
    "a",
    "span",
    "br",
    "img",
}

ALLOWED_ATTRIBUTES = {
    "a": {"href", "target", "rel"},
    "span": {"class"},
    "p": {"class"},
    "img": {"src", "alt", "width", "height"},
}


def as_text(blocks: list, join: str = " ") -> str:
    """Plain text of all blocks, markup discarded."""
    return join.join(block.get("text") or "" for block in blocks or [])


def as_html(blocks: list) -> str:
    """Serialize structured text into sanitized HTML."""
    output = []
    open_list = None
    for block in blocks or []:
        type_ = block.get("type")
        list_tag = LIST_TAGS.get(type_)
        if open_list and open_list != list_tag:
            output.append(f"</{open_list}>")
            open_list = None
        if list_tag:
            if open_list is None:
                output.append(f"<{list_tag}>")
                open_list = list_tag
            output.append(f"<li>{serialize_spans(block)}</li>")
        elif type_ in BLOCK_TAGS:
            tag = BLOCK_TAGS[type_]
            output.append(f"<{tag}>{serialize_spans(block)}</{tag}>")
        elif type_ == "image":
            output.append(serialize_image(block))
    if open_list:
        output.append(f"</{open_list}>")
    return sanitize_html("".join(output))


def sanitize_html(content_html: str) -> str:
    """Sanitize rendered html."""
    return nh3.clean(
        content_html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        link_rel=None,
    )


def serialize_image(block: dict) -> str:
    src = block.get("url")
    if not src:
        return ""
    alt = html.escape(block.get("alt") or "")
    width = py_.get(block, "dimensions.width")
    height = py_.get(block, "dimensions.height")
    size = f' width="{width}" height="{height}"' if width and height else ""
    return f'<p class="block-img"><img src="{html.escape(src)}" alt="{alt}"{size}></p>'


def serialize_spans(block: dict) -> str:
    """Serialize the text of a block, wrapping spans in tags.

    Spans may overlap, so at every boundary the tags that end are closed
    together with any tag opened after them, and the still active ones are
    reopened."""
    text = block.get("text") or ""
    spans = sorted(
        (
            span
            for span in block.get("spans") or []
            if 0 <= span.get("start", 0) < span.get("end", 0) <= len(text)
        ),
        key=lambda span: (span["start"], -span["end"]),
    )
    boundaries = sorted(
        {0, len(text)}
        | {span["start"] for span in spans}
        | {span["end"] for span in spans}
    )
    output = []
    stack = []
    for start, end in zip(boundaries, boundaries[1:]):
        active = [s for s in spans if s["start"] <= start and s["end"] >= end]
        keep = 0
        while keep < len(stack) and any(stack[keep] is s for s in active):
            keep += 1
        for span in reversed(stack[keep:]):
            output.append(close_tag(span))
        stack = stack[:keep]
        for span in active:
            if not any(span is s for s in stack):
                output.append(open_tag(span))
                stack.append(span)
        output.append(escape_text(text[start:end]))
    for span in reversed(stack):
        output.append(close_tag(span))
    return "".join(output)


def escape_text(text: str) -> str:
    return html.escape(text).replace("\n", "<br>")


def link_url(data: dict) -> Optional[str]:
    """Resolve a link field to a url. Documents link to their post page."""
    if data.get("link_type") == "Document":
        uid = data.get("uid")
        return f"/post/{uid}" if uid else None
    return data.get("url")


def open_tag(span: dict) -> str:
    type_ = span.get("type")
    if type_ == "strong":
        return "<strong>"
    if type_ == "em":
        return "<em>"
    if type_ == "hyperlink":
        data = span.get("data") or {}
        href = link_url(data)
        if not href:
            return "<span>"
        target = data.get("target")
        if target:
            return f'<a href="{html.escape(href)}" target="{html.escape(target)}" rel="noopener noreferrer">'
        return f'<a href="{html.escape(href)}">'
    if type_ == "label":
        label = py_.get(span, "data.label") or ""
        return f'<span class="{html.escape(label)}">'
    return "<span>"


def close_tag(span: dict) -> str:
    type_ = span.get("type")
    if type_ == "strong":
        return "</strong>"
    if type_ == "em":
        return "</em>"
    if type_ == "hyperlink" and link_url(span.get("data") or {}):
        return "</a>"
    return "</span>"
