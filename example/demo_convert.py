#!/usr/bin/env python3
"""
Demo: Converting a snapshot of the M0 store

This demo runs a complete conversion with the configuration in
insee-2018.toml and writes the results next to the legacy dataset:
- operations.trig (families, series and operations; indicators)
- codes.ttl and organisations.ttl
- reports.trig (one named graph per metadata report)

All problems found in the legacy data are written to m0migrate.log.
"""

import logging
import sys
from pathlib import Path

from m0migrate import setup_logging
from m0migrate.checks import MigrationError
from m0migrate.config import load_config
from m0migrate.pipeline import Pipeline

logger = logging.getLogger(__name__)


def main(config_file: Path) -> int:
    setup_logging(logging.INFO, config_file.parent / "m0migrate.log")
    config = load_config(config_file)
    try:
        pipeline = Pipeline.from_config(config)
    except MigrationError:
        return 1
    out_dir = config.legacy_file.parent

    print("🔗 Building operations and indicators...")
    pipeline.build_operations_dataset().serialize(out_dir / "operations.trig", format="trig")
    print("📋 Building code lists, organizations, links and documents...")
    pipeline.build_code_lists().serialize(out_dir / "codes.ttl", format="turtle")
    pipeline.build_organizations().serialize(out_dir / "organisations.ttl", format="turtle")
    pipeline.build_links().serialize(out_dir / "liens.ttl", format="turtle")
    pipeline.build_documents().serialize(out_dir / "documents.ttl", format="turtle")
    print("📖 Building metadata reports...")
    pipeline.build_reports().serialize(out_dir / "reports.trig", format="trig")
    print(f"✓ Results written to {out_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main(Path(__file__).parent / "insee-2018.toml"))
