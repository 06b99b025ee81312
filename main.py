#!/usr/bin/env python3
"""
NYPD Shooting Incident Report - Main Pipeline
=============================================

Downloads the incident dataset and produces the exploratory report.

Stages:
    1. Load - Fetch and parse the CSV
    2. Normalize - Typed columns and derived year/hour/month
    3. Aggregate - Grouped counts, rates and murder shares
    4. Regress - Latitude/longitude ~ hour of day
    5. Report - Charts, metrics and markdown summary

Usage:
    # Run with defaults from config/config.yaml
    python main.py

    # Use a local copy of the CSV
    python main.py --source data/raw/NYPD_Shooting_Incident_Data__Historic_.csv

    # Write the report elsewhere
    python main.py --output reports/2026/
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd

from shooting_report.aggregation import (
    DEFAULT_POPULATIONS, print_aggregation_summary, summarize_incidents,
)
from shooting_report.data_loader import (
    DEFAULT_SOURCE_URL, load_config, load_data, print_data_summary,
)
from shooting_report.eda import generate_report
from shooting_report.errors import ReportError
from shooting_report.evaluation import evaluate_models, print_evaluation_report
from shooting_report.preprocessing import normalize_incidents, print_preprocessing_summary
from shooting_report.regression import fit_location_models, print_model_summary


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'report_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def run_load(config: Dict[str, Any], source: Optional[str] = None) -> pd.DataFrame:
    """
    Execute stage 1: fetch and parse the CSV.

    Args:
        config: Configuration dictionary
        source: URL or path overriding the configured source

    Returns:
        Untyped incident table
    """
    print("\n" + "=" * 70)
    print("STAGE 1: LOAD")
    print("=" * 70)

    data_config = config.get('data', {})
    source = source or data_config.get('source_url', DEFAULT_SOURCE_URL)

    df = load_data(source, timeout=data_config.get('timeout_seconds', 60))
    print_data_summary(df)
    return df


def run_normalize(raw: pd.DataFrame) -> pd.DataFrame:
    """Execute stage 2: typed conversion."""
    print("\n" + "=" * 70)
    print("STAGE 2: NORMALIZE")
    print("=" * 70)

    df = normalize_incidents(raw)
    print_preprocessing_summary(df)
    return df


def run_aggregate(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """Execute stage 3: grouped counts and rates."""
    print("\n" + "=" * 70)
    print("STAGE 3: AGGREGATE")
    print("=" * 70)

    summary = summarize_incidents(
        df,
        populations=config.get('populations', DEFAULT_POPULATIONS),
        top=config.get('aggregation', {}).get('top_n', 10),
    )
    print_aggregation_summary(summary)
    return summary


def run_regress(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """Execute stage 4: coordinate ~ hour regressions and their diagnostics."""
    print("\n" + "=" * 70)
    print("STAGE 4: REGRESS")
    print("=" * 70)

    models = fit_location_models(
        df,
        reference=config.get('regression', {}).get('reference_hour', 0),
    )
    print_model_summary(models)

    output_dir = config.get('output', {}).get('report_dir', 'reports/')
    eval_result = evaluate_models(models, output_dir=output_dir)
    print_evaluation_report(eval_result['metrics'])

    return {'models': models, 'evaluation': eval_result}


def run_full_pipeline(
    config_path: str = "config/config.yaml",
    source: Optional[str] = None,
    output_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute every stage and write the report.

    Args:
        config_path: Path to configuration file
        source: URL or path overriding the configured source
        output_dir: Report directory overriding the configured one

    Returns:
        Dictionary containing all stage results
    """
    config = load_config(config_path)
    setup_logging(config.get('logging', {}).get('level', 'INFO'))

    if output_dir:
        config.setdefault('output', {})['report_dir'] = output_dir
    report_dir = config.get('output', {}).get('report_dir', 'reports/')

    print("\n" + "=" * 70)
    print("NYPD SHOOTING INCIDENT REPORT")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    raw = run_load(config, source)
    df = run_normalize(raw)
    summary = run_aggregate(df, config)
    regression = run_regress(df, config)

    report = generate_report(
        df,
        summary,
        output_dir=report_dir,
        eval_result=regression['evaluation'],
    )

    print("\n" + "=" * 70)
    print("REPORT COMPLETE")
    print("=" * 70)
    print(f"  • Incidents: {len(df)} ({df.attrs.get('rejected_rows', 0)} rows rejected)")
    for response, model in regression['models'].items():
        r2 = f"{model.r_squared:.4f}" if model is not None else "not fitted"
        print(f"  • {response} ~ hour R²: {r2}")
    print(f"  • Figures: {len(report['figures'])}")
    print(f"  • Summary: {report['summary_path']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return {
        'config': config,
        'data': df,
        'summary': summary,
        'regression': regression,
        'report': report,
    }


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Exploratory report over the NYPD Shooting Incident dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --source data/raw/shootings.csv
  python main.py --config config/custom.yaml --output reports/custom/
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--source', '-s',
        type=str,
        default=None,
        help='CSV URL or local path (default: data.source_url from config)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='Report directory (default: output.report_dir from config)'
    )

    args = parser.parse_args()

    try:
        run_full_pipeline(args.config, source=args.source, output_dir=args.output)
        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    except ReportError as e:
        logging.error(f"Report failed: {e}", exc_info=True)
        print(f"\n❌ Report failed: {e}")
        return 1

    except KeyError as e:
        logging.error(f"Report failed, configuration is missing a value: {e}", exc_info=True)
        print(f"\n❌ Report failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
