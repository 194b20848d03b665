"""
Visualization functions for phageome data.
"""

import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.patches import Patch
from matplotlib_venn import venn2


def _category_colors(categories, colors=None, palette='Set2'):
    """Complete a category -> color mapping from a seaborn palette."""
    categories = list(categories)
    defaults = dict(zip(categories, sns.color_palette(palette, len(categories))))
    if colors:
        defaults.update({c: colors[c] for c in categories if c in colors})
    return defaults


def format_pvalue(p_value):
    """Format a p-value for figure annotations."""
    if p_value is None or pd.isna(p_value):
        return 'p = n/a'
    if p_value < 0.001:
        return 'p < 0.001'
    return f'p = {p_value:.3f}'


def _annotate_pvalue(ax, x1, x2, y, height, p_value):
    """Draw a bracket between two boxes with the p-value above it."""
    ax.plot([x1, x1, x2, x2], [y, y + height, y + height, y], lw=1.2, color='black')
    ax.text((x1 + x2) / 2, y + height, format_pvalue(p_value),
            ha='center', va='bottom', fontsize=11)


def _bracket_geometry(values):
    """Bracket base and height above the largest plotted value."""
    values = pd.Series(values).dropna()
    if values.empty:
        return 1.0, 0.05
    top = values.max()
    spread = top - values.min()
    height = spread * 0.05 if spread > 0 else max(abs(top) * 0.05, 0.05)
    return top + height, height


def plot_category_pie(frequencies, title, colors=None):
    """
    Create a pie chart of a fixed-category frequency table.

    Categories with a zero count are not drawn but stay in the legend, so
    colors remain stable between figures.

    Parameters:
    -----------
    frequencies : pandas.Series
        Counts indexed by category
    title : str
        Figure title
    colors : dict, optional
        Category -> color mapping

    Returns:
    --------
    matplotlib.figure.Figure
        Pie chart figure
    """
    colors = _category_colors(frequencies.index, colors)
    total = int(frequencies.sum())

    fig, ax = plt.subplots(figsize=(8, 6))

    nonzero = frequencies[frequencies > 0]
    if nonzero.empty:
        ax.text(0.5, 0.5, 'No vOTUs', ha='center', va='center', fontsize=12,
                transform=ax.transAxes)
        ax.axis('off')
    else:
        ax.pie(
            nonzero.values,
            colors=[colors[c] for c in nonzero.index],
            autopct='%1.1f%%',
            startangle=90,
            counterclock=False,
            wedgeprops=dict(edgecolor='white')
        )
        ax.axis('equal')

    handles = [Patch(facecolor=colors[c], label=f'{c} ({int(n)})') for c, n in frequencies.items()]
    ax.legend(handles=handles, bbox_to_anchor=(1.05, 0.5), loc='center left', frameon=False)
    ax.set_title(f'{title} (n = {total})')

    plt.tight_layout()

    return fig


def plot_compartment_venn(feces_taxa, blood_taxa, labels=('Stool', 'Blood'), colors=None):
    """
    Create a Venn diagram of the vOTUs detected in each compartment.

    Parameters:
    -----------
    feces_taxa : set
        vOTUs detected in stool samples
    blood_taxa : set
        vOTUs detected in blood samples
    labels : tuple
        Names of the two compartments
    colors : dict, optional
        Compartment label -> color mapping

    Returns:
    --------
    matplotlib.figure.Figure
        Venn diagram figure
    """
    feces_taxa = set(feces_taxa)
    blood_taxa = set(blood_taxa)
    colors = _category_colors(labels, colors)

    fig, ax = plt.subplots(figsize=(8, 6))

    if not feces_taxa and not blood_taxa:
        ax.text(0.5, 0.5, 'No vOTUs', ha='center', va='center', fontsize=12,
                transform=ax.transAxes)
        ax.axis('off')
    else:
        venn = venn2([feces_taxa, blood_taxa], set_labels=labels,
                     set_colors=(colors[labels[0]], colors[labels[1]]), ax=ax)

        # Add counts to labels
        subset_labels = {
            '10': f'{labels[0]} only\n{len(feces_taxa - blood_taxa)}',
            '01': f'{labels[1]} only\n{len(blood_taxa - feces_taxa)}',
            '11': f'Both\n{len(feces_taxa & blood_taxa)}',
        }
        for subset_id, text in subset_labels.items():
            label = venn.get_label_by_id(subset_id)
            if label is not None:
                label.set_text(text)

    ax.set_title('vOTUs Detected per Compartment')

    return fig


def plot_group_boxplot(df, value_col, group_col, order=None, p_value=None,
                       ylabel=None, title=None, palette=None):
    """
    Create a boxplot of a value by group with a p-value annotation.

    Parameters:
    -----------
    df : pandas.DataFrame
        Table with value and grouping columns
    value_col : str
        Column to plot
    group_col : str
        Grouping column
    order : list, optional
        Group order on the x axis
    p_value : float, optional
        p-value of the two-group comparison; annotated when two groups are shown
    ylabel, title : str, optional
        Axis label and title
    palette : dict, optional
        Group -> color mapping

    Returns:
    --------
    matplotlib.figure.Figure
        Boxplot figure
    """
    if order is None:
        order = sorted(df[group_col].dropna().unique())
    palette = _category_colors(order, palette)

    fig, ax = plt.subplots(figsize=(6, 6))

    sns.boxplot(data=df, x=group_col, y=value_col, hue=group_col, order=order,
                hue_order=order, palette=palette, dodge=False, showfliers=False,
                width=0.5, ax=ax)
    sns.stripplot(data=df, x=group_col, y=value_col, order=order,
                  color='black', size=4, alpha=0.6, jitter=True, ax=ax)
    if ax.get_legend() is not None:
        ax.get_legend().remove()

    if len(order) == 2:
        y, height = _bracket_geometry(df[value_col])
        _annotate_pvalue(ax, 0, 1, y, height, p_value)
        ax.set_ylim(top=y + height * 4)

    ax.set_xlabel(group_col)
    ax.set_ylabel(ylabel or value_col)
    ax.set_title(title or f'{value_col} by {group_col}')
    sns.despine(ax=ax)

    plt.tight_layout()

    return fig


def plot_grouped_boxplot(df, value_col, x_col, hue_col, x_order=None, hue_order=None,
                         p_values=None, ylabel=None, title=None, palette=None):
    """
    Create a boxplot of a value by two factors, annotating one p-value per x category.

    Parameters:
    -----------
    df : pandas.DataFrame
        Table with value and factor columns
    value_col : str
        Column to plot
    x_col : str
        Factor on the x axis
    hue_col : str
        Factor compared within each x category (two levels expected)
    x_order, hue_order : list, optional
        Level orders
    p_values : dict, optional
        x level -> p-value of the hue comparison at that level
    ylabel, title : str, optional
        Axis label and title
    palette : dict, optional
        Hue level -> color mapping

    Returns:
    --------
    matplotlib.figure.Figure
        Boxplot figure
    """
    if x_order is None:
        x_order = sorted(df[x_col].dropna().unique())
    if hue_order is None:
        hue_order = sorted(df[hue_col].dropna().unique())
    palette = _category_colors(hue_order, palette)
    p_values = p_values or {}

    fig, ax = plt.subplots(figsize=(8, 6))

    sns.boxplot(data=df, x=x_col, y=value_col, hue=hue_col, order=x_order,
                hue_order=hue_order, palette=palette, showfliers=False, ax=ax)
    sns.stripplot(data=df, x=x_col, y=value_col, hue=hue_col, order=x_order,
                  hue_order=hue_order, dodge=True, palette={h: 'black' for h in hue_order}, size=4,
                  alpha=0.6, jitter=True, ax=ax)

    # One legend entry per hue level, colored like the boxes
    n_hue = len(hue_order)
    handles = [Patch(facecolor=palette[h], label=h) for h in hue_order]
    ax.legend(handles=handles, title=hue_col,
              bbox_to_anchor=(1.02, 1), loc='upper left', frameon=False)

    # seaborn spreads the hue levels over a width of 0.8 around each x position
    offsets = [0.8 / n_hue * (i - (n_hue - 1) / 2) for i in range(n_hue)]
    top = None
    for i, level in enumerate(x_order):
        if level not in p_values or n_hue < 2:
            continue
        y, height = _bracket_geometry(df.loc[df[x_col] == level, value_col])
        _annotate_pvalue(ax, i + offsets[0], i + offsets[-1], y, height, p_values[level])
        top = max(top, y + height * 4) if top is not None else y + height * 4
    if top is not None:
        ax.set_ylim(top=max(top, ax.get_ylim()[1]))

    ax.set_xlabel(x_col)
    ax.set_ylabel(ylabel or value_col)
    ax.set_title(title or f'{value_col} by {x_col} and {hue_col}')
    sns.despine(ax=ax)

    plt.tight_layout()

    return fig
