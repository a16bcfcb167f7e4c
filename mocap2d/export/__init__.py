"""Export modules."""

from mocap2d.export.json_export import export_report, export_skeleton

__all__ = ["export_report", "export_skeleton"]
