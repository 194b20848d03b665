"""
Smoke tests for the figure functions.
"""

import matplotlib.pyplot as plt
import pandas as pd
import pytest
from matplotlib.figure import Figure

from phageome_tools import (
    format_pvalue,
    plot_category_pie,
    plot_compartment_venn,
    plot_group_boxplot,
    plot_grouped_boxplot,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


@pytest.fixture
def group_df():
    return pd.DataFrame({
        'Value': [10.0, 20.0, 30.0, 40.0, 55.0, 65.0],
        'Disease': ['Healthy'] * 3 + ["Crohn's disease"] * 3,
        'SampleType': ['Stool', 'Plasma', 'Stool', 'Plasma', 'Stool', 'Plasma'],
    })


def _legend_labels(fig):
    return [text.get_text() for text in fig.axes[0].get_legend().get_texts()]


@pytest.mark.parametrize('p_value, expected', [
    (None, 'p = n/a'),
    (float('nan'), 'p = n/a'),
    (0.0004, 'p < 0.001'),
    (0.0312, 'p = 0.031'),
])
def test_format_pvalue(p_value, expected):
    assert format_pvalue(p_value) == expected


def test_pie_keeps_zero_categories_in_legend():
    frequencies = pd.Series([2, 0, 1], index=['Microviridae', 'Siphoviridae', 'Other'], name='Count')

    fig = plot_category_pie(frequencies, 'Family', colors={'Other': 'grey'})

    assert isinstance(fig, Figure)
    assert _legend_labels(fig) == ['Microviridae (2)', 'Siphoviridae (0)', 'Other (1)']
    assert fig.axes[0].get_title() == 'Family (n = 3)'


def test_pie_without_votus():
    frequencies = pd.Series([0, 0], index=['Bacteroidota', 'Unknown'], name='Count')

    fig = plot_category_pie(frequencies, 'Host phylum')

    texts = [t.get_text() for t in fig.axes[0].texts]
    assert 'No vOTUs' in texts
    assert _legend_labels(fig) == ['Bacteroidota (0)', 'Unknown (0)']


def test_compartment_venn_counts():
    fig = plot_compartment_venn({'V1', 'V2', 'V3'}, {'V2', 'V3', 'V4', 'V5'})

    texts = {t.get_text() for t in fig.axes[0].texts}
    assert {'Stool only\n1', 'Blood only\n2', 'Both\n2', 'Stool', 'Blood'} <= texts


def test_compartment_venn_without_overlap():
    fig = plot_compartment_venn({'V1'}, {'V2'})

    texts = {t.get_text() for t in fig.axes[0].texts}
    assert isinstance(fig, Figure)
    assert {'Stool only\n1', 'Blood only\n1'} <= texts


def test_group_boxplot(group_df):
    fig = plot_group_boxplot(group_df, 'Value', 'Disease', order=['Healthy', "Crohn's disease"],
                             p_value=0.04, ylabel='Percent', title='Overlap')
    ax = fig.axes[0]

    assert ax.get_title() == 'Overlap'
    assert ax.get_ylabel() == 'Percent'
    assert ax.get_legend() is None
    assert 'p = 0.040' in [t.get_text() for t in ax.texts]


def test_grouped_boxplot(group_df):
    fig = plot_grouped_boxplot(group_df, 'Value', 'SampleType', 'Disease',
                               x_order=['Stool', 'Plasma'], hue_order=['Healthy', "Crohn's disease"],
                               p_values={'Stool': None, 'Plasma': 0.0001})
    ax = fig.axes[0]

    assert _legend_labels(fig) == ['Healthy', "Crohn's disease"]
    assert [t.get_text() for t in ax.texts] == ['p = n/a', 'p < 0.001']
