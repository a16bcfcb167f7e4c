"""
Command-line interface for converting decoded motion into 2D skeleton animations.
"""

import argparse
import sys
from pathlib import Path

import yaml
from rich.console import Console
from rich.table import Table

from mocap2d.app import setup_logging
from mocap2d.core.config import (
    MISMATCH_POLICIES,
    SKELETON_MODES,
    SKELETON_SCOPES,
    ConverterConfig,
    SkeletonConversionConfig,
)
from mocap2d.core.errors import Mocap2DError
from mocap2d.core.pipeline import BatchConverter, ConvertOptions
from mocap2d.data.loaders import load_profile, load_skeleton
from mocap2d.export.json_export import export_report, export_skeleton

console = Console()

ROOT_MOTION_MODES = ("in_place", "none", "translate", "root_motion")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mocap2d",
        description="Retarget decoded 3D motion onto a 2D skeletal animation document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert one clip into a copy of the skeleton
  mocap2d --skeleton hero.json --profile humanoid.json --motion walk.json

  # Convert every clip in a directory, keeping hip translation
  mocap2d --skeleton hero.json --profile humanoid.json --motion-dir clips/ --root-motion translate

  # Rebuild the skeleton hierarchy from the source skeleton first
  mocap2d --skeleton hero.json --profile humanoid.json --motion walk.json \\
      --convert-skeleton --skeleton-mode fbx-first --skeleton-mismatch skip-missing
        """,
    )

    parser.add_argument(
        "--skeleton",
        type=Path,
        required=True,
        help="Target skeleton JSON document",
    )

    parser.add_argument(
        "--profile",
        type=Path,
        required=True,
        help="Retarget profile (JSON or YAML)",
    )

    inputs = parser.add_mutually_exclusive_group(required=True)
    inputs.add_argument(
        "--motion",
        type=Path,
        nargs="+",
        help="Decoded motion JSON file(s)",
    )
    inputs.add_argument(
        "--motion-dir",
        type=Path,
        help="Directory of decoded motion JSON files",
    )

    parser.add_argument(
        "--animation-name",
        help="Animation name (single input only)",
    )

    parser.add_argument(
        "--fps",
        type=float,
        help="Sampling rate recorded in the report",
    )

    parser.add_argument(
        "--root-motion",
        choices=ROOT_MOTION_MODES,
        help="Hip translation mode (overrides profile and config)",
    )

    parser.add_argument(
        "--convert-skeleton",
        action="store_true",
        help="Convert the skeleton hierarchy from the source skeleton before retargeting",
    )

    parser.add_argument(
        "--skeleton-mode",
        choices=SKELETON_MODES,
        help="Skeleton conversion mode",
    )

    parser.add_argument(
        "--skeleton-scope",
        choices=SKELETON_SCOPES,
        help="Skeleton conversion scope",
    )

    parser.add_argument(
        "--skeleton-mismatch",
        choices=MISMATCH_POLICIES,
        help="Policy for unmapped source nodes and dangling references",
    )

    parser.add_argument(
        "--out",
        type=Path,
        help="Output skeleton path (default: <skeleton>.generated.json)",
    )

    parser.add_argument(
        "--report",
        type=Path,
        help="Report path (default: <skeleton>.generated.report.json)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file (YAML)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    return parser


def resolve_skeleton_conversion(args, config: ConverterConfig) -> SkeletonConversionConfig:
    """Command-line flags override the configured skeleton conversion."""
    base = config.skeleton_conversion
    return SkeletonConversionConfig(
        enabled=bool(args.convert_skeleton or base.enabled),
        mode=args.skeleton_mode or base.mode,
        scope=args.skeleton_scope or base.scope,
        mismatch_policy=args.skeleton_mismatch or base.mismatch_policy,
    )


def collect_motion_paths(args):
    if args.motion_dir is not None:
        return sorted(p for p in args.motion_dir.glob("*.json") if p.is_file())
    return list(args.motion)


def print_summary(report):
    table = Table(title="Conversion summary")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Animation")
    table.add_column("Bones", justify="right")
    table.add_column("Warnings", justify="right")

    for item in report.items:
        status = "[green]ok[/green]" if item.status == "ok" else "[red]failed[/red]"
        table.add_row(
            Path(item.file).name,
            status,
            item.animation_name or "-",
            str(len(item.mapped_bones)),
            str(len(item.warnings)),
        )

    console.print(table)
    console.print(
        f"Processed {len(report.items)} file(s): "
        f"{report.files_succeeded} succeeded, {report.files_failed} failed"
    )


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration
    config = ConverterConfig.from_yaml(args.config) if args.config else ConverterConfig()
    setup_logging(args.log_level or config.log_level)

    # Validate configuration
    issues = config.validate()
    if issues:
        console.print("[yellow]Configuration warnings:[/yellow]")
        for issue in issues:
            console.print(f"  - {issue}")

    try:
        skeleton = load_skeleton(args.skeleton)
        profile = load_profile(args.profile)
    except (Mocap2DError, OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading inputs:[/red] {e}")
        return 1

    paths = collect_motion_paths(args)
    if not paths:
        console.print("[red]No motion files to convert.[/red]")
        return 1

    options = ConvertOptions(
        root_motion=args.root_motion,
        fps=args.fps,
        skeleton_conversion=resolve_skeleton_conversion(args, config),
    )
    converter = BatchConverter(skeleton, profile, config, options)

    console.print(f"\n[bold green]Converting {len(paths)} motion file(s)[/bold green] into {args.skeleton}")
    report = converter.run(
        paths,
        target_skeleton=str(args.skeleton),
        animation_name=args.animation_name,
        show_progress=len(paths) > 1,
    )

    stem = args.skeleton.with_suffix("")
    out_path = args.out or stem.with_name(f"{stem.name}.generated.json")
    report_path = args.report or stem.with_name(f"{stem.name}.generated.report.json")

    if report.files_succeeded:
        export_skeleton(converter.skeleton, out_path, indent=config.output.indent)
        report.output_path = str(out_path)
        console.print(f"[green]✓[/green] Exported skeleton: {out_path}")

    export_report(report.to_dict(), report_path, indent=config.output.indent)
    console.print(f"[green]✓[/green] Exported report: {report_path}")

    print_summary(report)
    return 0 if report.files_succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
