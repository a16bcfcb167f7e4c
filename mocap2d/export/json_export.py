"""Write merged skeletons and batch reports as JSON."""

import json
from pathlib import Path
from typing import Any, Dict


def _write_json(data: Any, output_path: Path, indent: int):
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)
        f.write("\n")


def export_skeleton(skeleton: Dict[str, Any], output_path: Path, indent: int = 2):
    """
    Export a (merged) skeleton document.

    Args:
        skeleton: Skeleton document
        output_path: Output JSON file path
        indent: JSON indentation
    """
    _write_json(skeleton, output_path, indent)


def export_report(report: Dict[str, Any], output_path: Path, indent: int = 2):
    """Export a batch conversion report."""
    _write_json(report, output_path, indent)
