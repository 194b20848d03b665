"""
Linear pipeline from the three input tables to the six manuscript figures.

load -> sample filter -> taxon filter & normalize -> set reconciliation,
taxonomic aggregation and diversity -> figures and tables.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd

from .phageome_sets import (
    OverlapResult,
    aggregate_annotation,
    compartment_sets,
    reconcile_individuals
)
from .phageome_stats import (
    adjust_pvalues,
    calculate_alpha_diversity,
    compare_groups,
    paired_dissimilarity
)
from .phageome_utils import (
    PhageomeData,
    exclude_samples,
    filter_viral_taxa,
    load_phageome_data,
    normalize_abundance,
    remove_orphan_samples,
    select_samples
)
from .phageome_viz import (
    plot_category_pie,
    plot_compartment_venn,
    plot_group_boxplot,
    plot_grouped_boxplot
)

logger = logging.getLogger(__name__)

FIGURE_FILES = [
    'fig1_blood_family_pie.png',
    'fig2_compartment_venn.png',
    'fig3_shared_host_phylum_pie.png',
    'fig4_percent_of_feces_boxplot.png',
    'fig5_percent_of_blood_boxplot.png',
    'fig6_shannon_boxplot.png',
]


@dataclass(frozen=True)
class PipelineResults:
    """Every table the figures are drawn from."""
    data: PhageomeData
    proportions: pd.DataFrame
    paired_samples: list
    overlap: OverlapResult
    feces_taxa: frozenset
    blood_taxa: frozenset
    blood_family: pd.Series
    shared_host_phylum: pd.Series
    alpha_diversity: pd.DataFrame
    group_tests: pd.DataFrame
    dissimilarity: pd.DataFrame

    @property
    def shared_taxa(self):
        return self.feces_taxa & self.blood_taxa


def _resolve(path, base_dir):
    path = Path(path)
    return path if path.is_absolute() else Path(base_dir) / path


def _aggregate(taxa, taxonomy_df, column, settings):
    return aggregate_annotation(
        taxa,
        taxonomy_df,
        column,
        settings['categories'],
        missing_label=settings.get('missing_label', 'Unknown'),
        other_label=settings.get('other_label')
    )


def run_group_tests(overlap_summary, alpha_df, config):
    """
    Disease comparisons shown in figures 4-6, with corrected p-values.

    Returns:
    --------
    pandas.DataFrame
        One row per comparison, indexed by comparison name
    """
    disease_order = config['metadata']['disease_order']
    statistics = config['statistics']

    results = [
        compare_groups(overlap_summary, 'PercentOfFeces', 'Disease', disease_order),
        compare_groups(overlap_summary, 'PercentOfBlood', 'Disease', disease_order),
    ]
    for sample_type in config['metadata']['sample_type_order']:
        subset = alpha_df[alpha_df['SampleType'] == sample_type]
        results.append(compare_groups(subset, 'Shannon', 'Disease', disease_order,
                                      label=f'Shannon ({sample_type})'))

    tests = pd.DataFrame(results).set_index('Comparison')
    return adjust_pvalues(tests, method=statistics.get('correction', 'fdr_bh'))


def prepare_results(data, config):
    """
    Run every computation step on loaded tables.

    Parameters:
    -----------
    data : PhageomeData
        Aligned input tables
    config : dict
        Analysis configuration

    Returns:
    --------
    PipelineResults
        Prepared tables for the figures
    """
    exclusions = config['filtering'].get('low_depth_samples') or []

    retained = exclude_samples(data.samples, exclusions)
    paired = remove_orphan_samples(retained, exclusions)

    viral = filter_viral_taxa(select_samples(data, retained))
    proportions = normalize_abundance(viral.abundance)

    overlap = reconcile_individuals(proportions[paired], viral.metadata)
    feces_taxa, blood_taxa = compartment_sets(proportions)
    logger.info(f"{len(feces_taxa)} vOTUs in stool, {len(blood_taxa)} in blood, "
                f"{len(feces_taxa & blood_taxa)} shared")

    aggregation = config['aggregation']
    blood_family = _aggregate(blood_taxa, viral.taxonomy, 'Family', aggregation['family'])
    shared_host_phylum = _aggregate(feces_taxa & blood_taxa, viral.taxonomy, 'HostPhylum',
                                    aggregation['host_phylum'])

    alpha_df = calculate_alpha_diversity(proportions, viral.metadata)
    group_tests = run_group_tests(overlap.summary, alpha_df, config)

    dissimilarity = paired_dissimilarity(
        proportions[paired], viral.metadata,
        metric=config['statistics'].get('beta_metric', 'braycurtis')
    )

    return PipelineResults(
        data=viral,
        proportions=proportions,
        paired_samples=paired,
        overlap=overlap,
        feces_taxa=feces_taxa,
        blood_taxa=blood_taxa,
        blood_family=blood_family,
        shared_host_phylum=shared_host_phylum,
        alpha_diversity=alpha_df,
        group_tests=group_tests,
        dissimilarity=dissimilarity
    )


def run_pipeline(config, base_dir='.'):
    """
    Load the configured input files and prepare every figure table.

    Relative paths in the 'data' section are resolved against base_dir.
    """
    data_config = config['data']
    data = load_phageome_data(
        _resolve(data_config['abundance_file'], base_dir),
        _resolve(data_config['taxonomy_file'], base_dir),
        _resolve(data_config['metadata_file'], base_dir),
        abundance_sep=data_config.get('abundance_sep', '\t'),
        taxonomy_sep=data_config.get('taxonomy_sep', ','),
        metadata_sep=data_config.get('metadata_sep', ';')
    )
    return prepare_results(data, config)


def render_figures(results, figures_dir, config):
    """
    Draw and save the six figures.

    Returns:
    --------
    list
        Paths of the saved figures, in figure order
    """
    figures_dir = Path(figures_dir)
    figures_dir.mkdir(parents=True, exist_ok=True)

    visualization = config['visualization']
    palette = visualization.get('palette', {})
    dpi = visualization.get('figure_dpi', 300)
    disease_order = config['metadata']['disease_order']
    sample_type_order = config['metadata']['sample_type_order']
    tests = results.group_tests

    figures = [
        plot_category_pie(results.blood_family, 'Family of vOTUs Detected in Blood',
                          colors=palette.get('family')),
        plot_compartment_venn(results.feces_taxa, results.blood_taxa,
                              colors=palette.get('compartment')),
        plot_category_pie(results.shared_host_phylum, 'Predicted Host Phylum of Shared vOTUs',
                          colors=palette.get('host_phylum')),
        plot_group_boxplot(results.overlap.summary, 'PercentOfFeces', 'Disease', order=disease_order,
                           p_value=tests.loc['PercentOfFeces', 'P-value'],
                           ylabel='Stool vOTUs detected in blood (%)',
                           title='Stool vOTUs Translocated to Blood',
                           palette=palette.get('disease')),
        plot_group_boxplot(results.overlap.summary, 'PercentOfBlood', 'Disease', order=disease_order,
                           p_value=tests.loc['PercentOfBlood', 'P-value'],
                           ylabel='Blood vOTUs detected in stool (%)',
                           title='Blood vOTUs Shared with Stool',
                           palette=palette.get('disease')),
        plot_grouped_boxplot(results.alpha_diversity, 'Shannon', 'SampleType', 'Disease',
                             x_order=sample_type_order, hue_order=disease_order,
                             p_values={t: tests.loc[f'Shannon ({t})', 'P-value'] for t in sample_type_order},
                             ylabel='Shannon index', title='vOTU Shannon Diversity',
                             palette=palette.get('disease')),
    ]

    saved = []
    for fig, filename in zip(figures, FIGURE_FILES):
        output_file = figures_dir / filename
        fig.savefig(output_file, dpi=dpi, bbox_inches='tight')
        plt.close(fig)
        logger.info(f"Figure saved to {output_file}")
        saved.append(output_file)

    return saved


def write_tables(results, tables_dir):
    """
    Save the prepared tables as CSV files.

    Returns:
    --------
    list
        Paths of the saved tables
    """
    tables_dir = Path(tables_dir)
    tables_dir.mkdir(parents=True, exist_ok=True)

    all_taxa = sorted(results.feces_taxa | results.blood_taxa)
    compartment_df = pd.DataFrame({
        'InStool': [t in results.feces_taxa for t in all_taxa],
        'InBlood': [t in results.blood_taxa for t in all_taxa],
    }, index=pd.Index(all_taxa, name='vOTU'))

    tables = {
        'overlap_summary.csv': results.overlap.summary,
        'compartment_votus.csv': compartment_df,
        'blood_family_counts.csv': results.blood_family.to_frame(),
        'shared_host_phylum_counts.csv': results.shared_host_phylum.to_frame(),
        'alpha_diversity.csv': results.alpha_diversity,
        'group_tests.csv': results.group_tests,
        'paired_dissimilarity.csv': results.dissimilarity,
    }

    saved = []
    for filename, table in tables.items():
        output_file = tables_dir / filename
        table.to_csv(output_file)
        logger.info(f"Table saved to {output_file}")
        saved.append(output_file)

    return saved
