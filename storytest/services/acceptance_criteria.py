
import re
from typing import Any, Callable, Dict, Optional, Sequence

from storytest.services.adf_text import field_to_text

# Custom field ids that most often hold acceptance criteria, highest priority first
KNOWN_AC_FIELDS = ('customfield_10014', 'customfield_10015', 'customfield_10016')

AC_LABEL_RE = re.compile(r'acceptance.*criteria', re.IGNORECASE)

# Separators may run over line breaks, so a list under a heading is still captured
_SEPARATOR = r'[ \t]*[:\-]?\s*'
_UNTIL_BLANK_LINE = r'(.*?)(?=\n\s*\n|\Z)'
AC_PHRASE_RE = re.compile(r'acceptance criteria' + _SEPARATOR + _UNTIL_BLANK_LINE, re.IGNORECASE | re.DOTALL)
AC_MARKER_RE = re.compile(r'\bAC\b' + _SEPARATOR + _UNTIL_BLANK_LINE, re.IGNORECASE | re.DOTALL)
AC_HEADING_RE = re.compile(r'^\s*acceptance criteria\s*[:\-]?\s*$', re.IGNORECASE)

Strategy = Callable[[Dict[str, Any], str], Optional[str]]


def _fields(issue: Any) -> Dict[str, Any]:
    fields = issue.get('fields') if isinstance(issue, dict) else None
    return fields if isinstance(fields, dict) else {}


def from_known_custom_fields(issue: Dict[str, Any], description: str) -> Optional[str]:
    fields = _fields(issue)
    for field_id in KNOWN_AC_FIELDS:
        text = field_to_text(fields.get(field_id))
        if text:
            return text
    return None


def from_named_field(issue: Dict[str, Any], description: str) -> Optional[str]:
    """Match a field by its human-readable label.

    Labels are only present when the issue was fetched with ``expand=names``.
    """
    names = issue.get('names') if isinstance(issue, dict) else None
    if not isinstance(names, dict):
        return None
    fields = _fields(issue)
    for field_id, label in names.items():
        if isinstance(label, str) and AC_LABEL_RE.search(label):
            text = field_to_text(fields.get(field_id))
            if text:
                return text
    return None


def _capture(pattern: re.Pattern, description: str) -> Optional[str]:
    if not isinstance(description, str):
        return None
    match = pattern.search(description)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def from_acceptance_phrase(issue: Dict[str, Any], description: str) -> Optional[str]:
    return _capture(AC_PHRASE_RE, description)


def from_ac_marker(issue: Dict[str, Any], description: str) -> Optional[str]:
    return _capture(AC_MARKER_RE, description)


def from_heading_section(issue: Dict[str, Any], description: str) -> Optional[str]:
    # Collection stops at the first blank line, even when more criteria follow it
    if not isinstance(description, str):
        return None
    collected = []
    in_section = False
    for line in re.split(r'\r?\n', description):
        if AC_HEADING_RE.match(line):
            in_section = True
            continue
        if not in_section:
            continue
        if not line.strip():
            break
        collected.append(line.strip())
    return '\n'.join(collected) if collected else None


STRATEGIES: Sequence[Strategy] = (
    from_known_custom_fields,
    from_named_field,
    from_acceptance_phrase,
    from_ac_marker,
    from_heading_section,
)


def locate_acceptance_criteria(issue: Dict[str, Any], description: str,
                               strategies: Sequence[Strategy] = STRATEGIES) -> str:
    """Return the acceptance criteria of an issue, or '' when none can be found.

    Strategies run in priority order and the first non-empty result wins.
    """
    for strategy in strategies:
        found = strategy(issue, description)
        if found:
            return found
    return ''
