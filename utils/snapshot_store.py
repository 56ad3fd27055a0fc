#!/usr/bin/env python3
"""
Snapshot Store - bite report envelope persistence
Reads the previous run's envelope and atomically replaces it with the new one
"""
import os
import json
import logging
import tempfile
from typing import Any, Dict, List, Optional

from bite_scanner.models import NormalizedReport

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = ('generated_at', 'sources', 'data')


def is_valid_envelope(envelope: Any) -> bool:
    """Structural check: generated_at string, sources list, data object with a reports list"""
    if not isinstance(envelope, dict):
        return False
    if any(key not in envelope for key in ENVELOPE_KEYS):
        return False
    if not isinstance(envelope['generated_at'], str) or not isinstance(envelope['sources'], list):
        return False
    data = envelope['data']
    return isinstance(data, dict) and isinstance(data.get('reports', []), list)


def read_envelope(path: str) -> Optional[Dict[str, Any]]:
    """Previous envelope, or None when missing, unreadable or malformed"""
    if not os.path.exists(path):
        logger.info(f"No previous snapshot at {path}")
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            envelope = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable snapshot {path}: {e}")
        return None
    if not is_valid_envelope(envelope):
        logger.warning(f"Ignoring snapshot {path}: unexpected structure")
        return None
    return envelope


def load_previous_reports(envelope: Optional[Dict[str, Any]]) -> List[NormalizedReport]:
    """Stored reports as NormalizedReport, skipping entries that fail validation"""
    if not envelope:
        return []
    reports = []
    skipped = 0
    for item in envelope.get('data', {}).get('reports', []):
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            reports.append(NormalizedReport.from_dict(item))
        except ValueError as e:
            logger.debug(f"Skipping stored report: {e}")
            skipped += 1
    if skipped:
        logger.warning(f"Skipped {skipped} invalid reports from previous snapshot")
    logger.info(f"Loaded {len(reports)} reports from previous snapshot")
    return reports


def write_envelope(path: str, envelope: Dict[str, Any]):
    """Write pretty JSON via a temp file in the same directory, then replace"""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(prefix='.biteReports-', suffix='.json', dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(envelope, f, indent=2, ensure_ascii=False)
            f.write('\n')
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
    logger.info(f"Snapshot written to {path}")
