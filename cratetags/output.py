"""
Output module for cratetags.

Streams report items as JSONL (one JSON object per line) for piping:

    from cratetags.output import emit
    emit(report.missing_sources)
"""

import json
import sys
from typing import Any, Iterable


def emit(items: Iterable[Any], err: bool = False) -> None:
    """
    Emit items as JSONL.

    Args:
        items: Items to emit (should have to_dict() method or be dicts)
        err: If True, output to stderr instead of stdout
    """
    stream = sys.stderr if err else sys.stdout

    for item in items:
        if hasattr(item, 'to_dict'):
            data = item.to_dict()
        elif isinstance(item, dict):
            data = item
        else:
            data = {'value': str(item)}

        print(json.dumps(data, ensure_ascii=False), file=stream, flush=True)
