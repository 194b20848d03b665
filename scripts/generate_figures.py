#!/usr/bin/env python3
"""
Generate the figures of the phage translocation manuscript.

This script:
1. Loads the vOTU abundance, taxonomy and sample metadata tables
2. Removes low-depth samples and their orphaned counterparts
3. Keeps viral, non-contaminant vOTUs and converts counts to relative abundance
4. Compares the vOTUs of each individual's stool and blood samples
5. Counts host phyla and families, and calculates Shannon diversity
6. Saves the six figures and the underlying tables

Usage:
    python scripts/generate_figures.py [--config CONFIG_FILE] [--output-dir DIR]
"""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import seaborn as sns

# Add tools directory to Python path
project_root = Path(__file__).resolve().parents[1]
sys.path.append(str(project_root / 'tools'))

from phageome_tools import (
    PhageomeError,
    load_config,
    render_figures,
    run_pipeline,
    setup_logger,
    write_tables
)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Generate phage translocation figures')
    parser.add_argument('--config', type=str, default='config/analysis_parameters.yml',
                        help='Path to configuration file')
    parser.add_argument('--output-dir', type=str, default='results',
                        help='Directory to save figures and tables')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Path to log file (default: log to console only)')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level (default: INFO)')
    return parser.parse_args()


def main():
    """Main function to generate the manuscript figures."""
    args = parse_args()

    logger = setup_logger(log_file=args.log_file, log_level=getattr(logging, args.log_level))
    logger.info("Starting figure generation")

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = project_root / config_path
    try:
        config = load_config(config_path)
        logger.info(f"Loaded configuration from {config_path}")
    except (OSError, KeyError) as e:
        logger.error(f"Error loading configuration: {str(e)}")
        sys.exit(1)

    for key in ['abundance_file', 'taxonomy_file', 'metadata_file']:
        input_file = Path(config['data'][key])
        if not input_file.is_absolute():
            input_file = project_root / input_file
        if not input_file.exists():
            logger.error(f"Input file not found: {input_file}")
            sys.exit(1)

    # All computation happens before any figure is written
    try:
        results = run_pipeline(config, base_dir=project_root)
    except PhageomeError as e:
        logger.error(f"{type(e).__name__}: {str(e)}")
        sys.exit(1)

    output_dir = Path(args.output_dir)
    if not output_dir.is_absolute():
        output_dir = project_root / output_dir

    sns.set_theme(style='whitegrid')
    render_figures(results, output_dir / 'figures', config)
    write_tables(results, output_dir / 'tables')

    logger.info("Figure generation completed successfully")


if __name__ == "__main__":
    main()
