"""Skeleton graph helpers and hierarchy conversion."""

from mocap2d.skeleton.convert import convert_skeleton
from mocap2d.skeleton.repair import collect_missing_bone_references

__all__ = ["convert_skeleton", "collect_missing_bone_references"]
