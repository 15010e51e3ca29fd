#!/usr/bin/env python3

"""
Jira Utilities - Shared formatting helpers
Atlassian Document Format (ADF) conversion, date and status formatting,
and opening tickets in a browser.
"""

import html
import re
import subprocess
import sys
from datetime import datetime, timezone
from typing import List, Optional, Tuple


def _inline_content(text: str) -> List[dict]:
    """Split a line into ADF text and inlineCard (bare URL) nodes."""
    result = []
    pos = 0
    for match in re.finditer(r'https?://[^\s\)]+', text):
        if match.start() > pos:
            result.append({"type": "text", "text": text[pos:match.start()]})
        result.append({"type": "inlineCard", "attrs": {"url": match.group(0)}})
        pos = match.end()

    if pos < len(text):
        result.append({"type": "text", "text": text[pos:]})

    return result if result else [{"type": "text", "text": text}]


def text_to_adf(text: str) -> dict:
    """Convert plain text to Atlassian Document Format (ADF).

    Supports:
    - Code blocks: ```language ... ```
    - Links: bare URLs
    """
    lines = text.split('\n')
    content = []
    i = 0

    while i < len(lines):
        line = lines[i]

        if line.strip().startswith('```'):
            language = line.strip()[3:].strip() or None

            code_lines = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith('```'):
                code_lines.append(lines[i])
                i += 1

            code_block = {
                "type": "codeBlock",
                "content": [{"type": "text", "text": '\n'.join(code_lines)}]
            }
            if language:
                code_block["attrs"] = {"language": language}

            content.append(code_block)
            i += 1  # Skip closing ```
        elif line.strip():
            content.append({"type": "paragraph", "content": _inline_content(line)})
            i += 1
        else:  # Empty line - add empty paragraph for spacing
            content.append({"type": "paragraph", "content": []})
            i += 1

    if not content:
        content = [{"type": "paragraph", "content": [{"type": "text", "text": ""}]}]

    return {"type": "doc", "version": 1, "content": content}


def adf_to_text(adf: Optional[dict]) -> str:
    """Convert Atlassian Document Format to plain text.

    Code blocks come back wrapped in triple backticks, mentions as @Name,
    inline cards as their URL.
    """
    if not adf or not isinstance(adf, dict):
        return ''

    def process_inline_content(content_items):
        result = []
        for item in content_items:
            item_type = item.get('type')
            if item_type == 'text':
                result.append(item.get('text', ''))
            elif item_type == 'mention':
                result.append(item.get('attrs', {}).get('text', '@Unknown'))
            elif item_type == 'inlineCard':
                result.append(item.get('attrs', {}).get('url', ''))
            elif item_type == 'hardBreak':
                result.append('\n')
        return ''.join(result)

    lines = []
    for block in adf.get('content', []):
        block_type = block.get('type')
        if block_type == 'paragraph':
            lines.append(process_inline_content(block.get('content', [])))
        elif block_type == 'codeBlock':
            language = block.get('attrs', {}).get('language', '')
            lines.append(f'```{language}')
            for item in block.get('content', []):
                if item.get('type') == 'text':
                    lines.append(item.get('text', ''))
            lines.append('```')
        elif block_type in ('bulletList', 'orderedList'):
            for list_item in block.get('content', []):
                for para in list_item.get('content', []):
                    lines.append('- ' + process_inline_content(para.get('content', [])))

    return '\n'.join(lines)


def strip_html(rendered: str) -> str:
    """Reduce Jira's rendered HTML (renderedBody) to plain text."""
    text = re.sub(r'<br\s*/?>|</p>|</li>', '\n', rendered, flags=re.IGNORECASE)
    text = re.sub(r'<[^>]+>', '', text)
    text = html.unescape(text)
    return '\n'.join(line.rstrip() for line in text.strip().splitlines())


def calculate_days_since_update(updated_str: Optional[str]) -> Tuple[int, str]:
    """Calculate days since last update and return (days, formatted_string)."""
    if not updated_str:
        return -1, '?d'
    try:
        # Jira sends -0500; fromisoformat wants -05:00
        if re.search(r'[+-]\d{4}$', updated_str):
            updated_str = updated_str[:-2] + ':' + updated_str[-2:]

        updated_dt = datetime.fromisoformat(updated_str)
        now = datetime.now(timezone.utc)
        days_diff = (now - updated_dt.astimezone(timezone.utc)).days
    except ValueError:
        return -1, '?d'

    if days_diff == 0:
        return days_diff, 'today'
    return days_diff, f'{days_diff}d'


STATUS_LETTERS = {
    'To Do': 'T',
    'Backlog': 'B',
    'Selected for Development': 'S',
    'In Progress': 'P',
    'In Review': 'R',
    'Blocked': 'X',
    'Done': 'C',
    'Closed': 'C',
    'Resolved': 'C',
}


def get_status_letter(status_name: str) -> str:
    """Map status name to single letter indicator."""
    return STATUS_LETTERS.get(status_name, '?')


def truncate(text: str, width: int) -> str:
    """Cut text to width, marking the cut with an ellipsis."""
    if width <= 0:
        return ''
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[:width - 3] + '...'


def open_in_browser(url: str) -> bool:
    """Open a URL with the platform opener. Returns False if no opener ran."""
    if sys.platform.startswith('linux'):
        cmd = ['xdg-open', url]
    elif sys.platform == 'darwin':
        cmd = ['open', url]
    elif sys.platform == 'win32':
        cmd = ['cmd', '/c', 'start', '', url]
    else:
        return False

    try:
        subprocess.run(cmd, check=False, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=5)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return True
