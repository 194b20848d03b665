"""
Phageome analysis toolkit for the stool/blood phage translocation study.

This package loads vOTU abundance, taxonomy and sample metadata tables,
reconciles the vOTUs detected in the stool and blood sample of each
individual, and draws the manuscript figures.

Usage:
    from phageome_tools import load_phageome_data, reconcile_individuals, ...
"""

from .errors import (
    PhageomeError,
    SchemaError,
    KeyMismatchError,
    EmptySampleError
)

from .logger import setup_logger

from .phageome_utils import (
    PhageomeData,
    load_config,
    load_abundance_table,
    load_taxonomy,
    load_metadata,
    load_phageome_data,
    build_phageome_data,
    parse_sample_id,
    paired_sample_id,
    exclude_samples,
    remove_orphan_samples,
    select_samples,
    filter_viral_taxa,
    normalize_abundance
)

from .phageome_sets import (
    IndividualPresence,
    OverlapResult,
    presence_set,
    overlap_percent,
    reconcile_individuals,
    compartment_sets,
    aggregate_annotation
)

from .phageome_stats import (
    shannon_index,
    calculate_alpha_diversity,
    compare_groups,
    adjust_pvalues,
    paired_dissimilarity
)

from .phageome_viz import (
    format_pvalue,
    plot_category_pie,
    plot_compartment_venn,
    plot_group_boxplot,
    plot_grouped_boxplot
)

from .phageome_pipeline import (
    FIGURE_FILES,
    PipelineResults,
    prepare_results,
    run_pipeline,
    render_figures,
    write_tables
)

__all__ = [
    'PhageomeError',
    'SchemaError',
    'KeyMismatchError',
    'EmptySampleError',
    'setup_logger',
    'PhageomeData',
    'load_config',
    'load_abundance_table',
    'load_taxonomy',
    'load_metadata',
    'load_phageome_data',
    'build_phageome_data',
    'parse_sample_id',
    'paired_sample_id',
    'exclude_samples',
    'remove_orphan_samples',
    'select_samples',
    'filter_viral_taxa',
    'normalize_abundance',
    'IndividualPresence',
    'OverlapResult',
    'presence_set',
    'overlap_percent',
    'reconcile_individuals',
    'compartment_sets',
    'aggregate_annotation',
    'shannon_index',
    'calculate_alpha_diversity',
    'compare_groups',
    'adjust_pvalues',
    'paired_dissimilarity',
    'format_pvalue',
    'plot_category_pie',
    'plot_compartment_venn',
    'plot_group_boxplot',
    'plot_grouped_boxplot',
    'FIGURE_FILES',
    'PipelineResults',
    'prepare_results',
    'run_pipeline',
    'render_figures',
    'write_tables'
]
