"""
Exploratory Data Analysis (EDA) Module
======================================

Static charts and the markdown summary for the incident report.

Functions:
    - plot_counts: Bar chart of a count Series
    - plot_incidents_by_year: Yearly incident trend, total and per borough
    - plot_top_locations: Horizontal bar chart of the most common locations
    - plot_borough_rates: Incidents per 100,000 residents by borough
    - plot_murder_share: Share of incidents flagged as murders by borough
    - build_summary_markdown: Markdown rendering of the printed tables
    - generate_report: Full report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from .schema import LATITUDE, OCCUR_DATE

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def _save(fig: plt.Figure, save_path: Optional[str], label: str) -> None:
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"{label} saved to {save_path}")


def plot_counts(
    counts: pd.Series,
    title: str,
    xlabel: str,
    color: str = "#1F78B4",
    figsize: Tuple[int, int] = (12, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Vertical bar chart of a count Series in its index order.

    Args:
        counts: Counts indexed by group value
        title: Chart title
        xlabel: X axis label
        color: Bar color
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)
    labels = [str(v) for v in counts.index]
    ax.bar(labels, counts.values, color=color, alpha=0.85)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.set_xlabel(xlabel)
    ax.set_ylabel('Incidents')
    if len(labels) > 12:
        ax.tick_params(axis='x', labelsize=8)

    _save(fig, save_path, title)
    return fig


def plot_incidents_by_year(
    year_borough: pd.DataFrame,
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Line chart of incidents per year, overall and per borough.

    Args:
        year_borough: Year × borough crosstab
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(year_borough.index, year_borough.sum(axis=1), 'k-', linewidth=2.5,
            marker='o', label='All boroughs')
    for borough in year_borough.columns:
        ax.plot(year_borough.index, year_borough[borough], linewidth=1.2,
                marker='.', alpha=0.8, label=str(borough).title())

    ax.set_title('Shooting Incidents per Year', fontsize=14, fontweight='bold')
    ax.set_xlabel('Year')
    ax.set_ylabel('Incidents')
    ax.legend(loc='upper right', fontsize=8)

    _save(fig, save_path, "Yearly trend plot")
    return fig


def plot_top_locations(
    top_locations: pd.Series,
    figsize: Tuple[int, int] = (10, 7),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Horizontal bar chart of the most common location descriptions."""
    fig, ax = plt.subplots(figsize=figsize)
    sns.barplot(
        y=[str(v) for v in top_locations.index],
        x=top_locations.values,
        color="#E31A1C",
        ax=ax,
    )
    ax.set_title(f'Top {len(top_locations)} Location Descriptions',
                 fontsize=14, fontweight='bold')
    ax.set_xlabel('Incidents')
    ax.set_ylabel('')

    _save(fig, save_path, "Top locations plot")
    return fig


def plot_borough_rates(
    rates: pd.DataFrame,
    figsize: Tuple[int, int] = (10, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Incidents per 100,000 residents, one bar per borough."""
    ordered = rates.sort_values('rate_per_100k', ascending=False)
    fig, ax = plt.subplots(figsize=figsize)
    bars = ax.bar([str(b).title() for b in ordered.index], ordered['rate_per_100k'],
                  color='steelblue', alpha=0.85)
    ax.bar_label(bars, fmt='%.1f', fontsize=9)
    ax.set_title('Incidents per 100,000 Residents', fontsize=14, fontweight='bold')
    ax.set_xlabel('Borough')
    ax.set_ylabel('Rate per 100k')

    _save(fig, save_path, "Borough rates plot")
    return fig


def plot_murder_share(
    murder_share: pd.DataFrame,
    figsize: Tuple[int, int] = (10, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Stacked bars of murders vs other incidents per borough."""
    fig, ax = plt.subplots(figsize=figsize)
    labels = [str(b).title() for b in murder_share.index]
    others = murder_share['incidents'] - murder_share['murders']

    ax.bar(labels, murder_share['murders'], color='darkred', alpha=0.85, label='Murder')
    ax.bar(labels, others, bottom=murder_share['murders'], color='lightgray',
           alpha=0.85, label='Non-murder')
    for idx, share in enumerate(murder_share['murder_share']):
        ax.text(idx, murder_share['incidents'].iloc[idx], f'{share:.1%}',
                ha='center', va='bottom', fontsize=9)

    ax.set_title('Statistical Murders by Borough', fontsize=14, fontweight='bold')
    ax.set_xlabel('Borough')
    ax.set_ylabel('Incidents')
    ax.legend(loc='upper right')

    _save(fig, save_path, "Murder share plot")
    return fig


def _table_block(table) -> List[str]:
    return ["```", table.to_string(), "```", ""]


def build_summary_markdown(
    df: pd.DataFrame,
    summary: Dict[str, Any],
    eval_metrics: Optional[Dict[str, Any]] = None,
    figures: Optional[List[str]] = None
) -> str:
    """
    Render the report tables as markdown.

    Args:
        df: Typed incident table
        summary: Dictionary from summarize_incidents
        eval_metrics: Metrics from evaluate_models (optional)
        figures: Figure file names to list

    Returns:
        Markdown text
    """
    lines = [
        "# NYPD Shooting Incidents: Exploratory Report",
        "",
        "## Dataset Snapshot",
        f"- **Incidents analysed:** {summary['total']:,}",
        f"- **Rows rejected during typing:** {df.attrs.get('rejected_rows', 0):,}",
        f"- **Missing coordinates:** {int(df[LATITUDE].isna().sum()):,}",
    ]
    if len(df):
        lines.append(
            f"- **Coverage:** {df[OCCUR_DATE].min():%d %b %Y} to {df[OCCUR_DATE].max():%d %b %Y}"
        )
    lines.append("")

    lines += ["## Incidents per 100,000 Residents", ""]
    lines += _table_block(summary['borough_rates'].round(1))

    lines += ["## Murder Share by Borough", ""]
    lines += _table_block(summary['murder_share'].round(3))

    lines += ["## Incidents per Year", ""]
    lines += _table_block(summary['year_borough'])

    if 'top_locations' in summary:
        lines += ["## Top Location Descriptions", ""]
        lines += _table_block(summary['top_locations'])

    if summary.get('independence'):
        result = summary['independence']
        lines += [
            "## Borough vs Murder Flag",
            "",
            f"- Chi-square statistic {result['statistic']:.2f} on {result['dof']} degrees "
            f"of freedom (p = {result['p_value']:.4g})",
            "",
        ]

    if eval_metrics:
        lines += ["## Coordinate ~ Hour of Day", ""]
        for response, m in eval_metrics['per_model'].items():
            lines.append(
                f"- `{response}`: R² = {m['r2']:.4f}, RMSE = {m['rmse']:.5f}, n = {m['n_obs']:,}"
            )
        for response in eval_metrics['skipped']:
            lines.append(f"- `{response}`: not fitted (degenerate design matrix)")
        lines.append("")

    if figures:
        lines += ["## Figures", ""]
        lines += [f"- `figures/{name}`" for name in figures]

    return "\n".join(lines) + "\n"


def generate_report(
    df: pd.DataFrame,
    summary: Dict[str, Any],
    output_dir: str = "reports/",
    eval_result: Optional[Dict[str, Any]] = None,
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate the complete report with all visualizations.

    Args:
        df: Typed incident table
        summary: Dictionary from summarize_incidents
        output_dir: Directory to save figures and summary
        eval_result: Result of evaluate_models (optional)
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing figure names and the summary path
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    figures_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("GENERATING REPORT")
    logger.info("=" * 60)

    figures = []

    charts = [
        ("01_incidents_by_borough.png", lambda p: plot_counts(
            summary['by_borough'], 'Incidents by Borough', 'Borough', save_path=p)),
        ("02_incidents_by_year.png", lambda p: plot_incidents_by_year(
            summary['year_borough'], save_path=p)),
        ("03_incidents_by_hour.png", lambda p: plot_counts(
            summary['by_hour'], 'Incidents by Hour of Day', 'Hour', color='#F1B434', save_path=p)),
        ("04_incidents_by_month.png", lambda p: plot_counts(
            summary['by_month'], 'Incidents by Month', 'Month', color='#33A02C', save_path=p)),
        ("05_borough_rates.png", lambda p: plot_borough_rates(
            summary['borough_rates'], save_path=p)),
        ("06_murder_share.png", lambda p: plot_murder_share(
            summary['murder_share'], save_path=p)),
    ]
    if 'top_locations' in summary and len(summary['top_locations']):
        charts.append(("07_top_locations.png", lambda p: plot_top_locations(
            summary['top_locations'], save_path=p)))

    for name, draw in charts:
        draw(str(figures_dir / name))
        figures.append(name)

    if eval_result:
        figures += eval_result.get('figures', [])

    markdown = build_summary_markdown(
        df,
        summary,
        eval_metrics=eval_result['metrics'] if eval_result else None,
        figures=figures,
    )
    summary_path = output_dir / "eda_summary.md"
    summary_path.write_text(markdown, encoding="utf-8")
    logger.info(f"Summary written to {summary_path}")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("REPORT COMPLETE - All figures saved to: %s", figures_dir)
    logger.info("=" * 60)

    return {
        'figures': figures,
        'summary_path': str(summary_path)
    }
