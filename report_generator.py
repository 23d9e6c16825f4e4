#!/usr/bin/env python3
"""
Summary report for a cycle time CSV
Aggregates report rows per team or user and renders Markdown and a histogram
"""

from datetime import datetime
from typing import Dict, List

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd

from config import VARIANT_COLUMNS


DURATION_COLUMNS = ['Days', 'WeekDays', 'InProgress', 'InTest', 'Passed']
FLAG_COLUMNS = ['Reworked', 'Repassed', 'Reverified']


class CycleTimeSummary:
    """Per-group statistics over the rows of a cycle time CSV"""

    def __init__(self, df: pd.DataFrame, variant: str = 'team'):
        self.df = df
        self.variant = variant
        # Last grouping column is the most specific one (Team or User)
        self.group_column = VARIANT_COLUMNS[variant][-1]

    @classmethod
    def from_csv(cls, path: str, variant: str = 'team') -> 'CycleTimeSummary':
        df = pd.read_csv(path, dtype={'Key': str, 'Points': str})
        for column in DURATION_COLUMNS + FLAG_COLUMNS:
            if column in df.columns:
                df[column] = pd.to_numeric(df[column], errors='coerce')
        return cls(df, variant)

    def group_stats(self) -> pd.DataFrame:
        """Issue count, weekday percentiles and rework rates per group"""
        if self.df.empty:
            return pd.DataFrame()

        grouped = self.df.groupby(self.group_column)
        stats = pd.DataFrame({
            'Issues': grouped.size(),
            'MedianWeekDays': grouped['WeekDays'].median(),
            'P85WeekDays': grouped['WeekDays'].quantile(0.85),
            'MedianInProgress': grouped['InProgress'].median(),
            'MedianInTest': grouped['InTest'].median(),
            'ReworkRate': grouped['Reworked'].mean(),
            'RepassRate': grouped['Repassed'].mean(),
            'ReverifyRate': grouped['Reverified'].mean(),
        })
        return stats.round(2).sort_values('Issues', ascending=False)

    def overall(self) -> Dict[str, float]:
        if self.df.empty:
            return {'issues': 0}
        return {
            'issues': int(len(self.df)),
            'median_weekdays': round(float(self.df['WeekDays'].median()), 2),
            'p85_weekdays': round(float(self.df['WeekDays'].quantile(0.85)), 2),
            'rework_rate': round(float(self.df['Reworked'].mean()), 2),
        }

    def markdown_lines(self) -> List[str]:
        overall = self.overall()
        lines = [
            "# Cycle Time Summary",
            "",
            f"**Report Date:** {datetime.now().strftime('%B %d, %Y')}   ",
            f"**Issues:** {overall['issues']}",
            "",
        ]
        if not overall['issues']:
            lines.append("No issues reported.")
            return lines

        lines.extend([
            f"- Median cycle time: **{overall['median_weekdays']}** working days",
            f"- 85th percentile: **{overall['p85_weekdays']}** working days",
            f"- Reworked in test: **{overall['rework_rate']:.0%}** of issues",
            "",
            f"## By {self.group_column}",
            "",
        ])

        stats = self.group_stats()
        columns = ['Issues'] + [c for c in stats.columns if c != 'Issues']
        lines.append("| " + " | ".join([self.group_column] + columns) + " |")
        lines.append("|" + "---|" * (len(columns) + 1))
        for name, row in stats.iterrows():
            cells = [str(name)] + [_format_cell(row[c]) for c in columns]
            lines.append("| " + " | ".join(cells) + " |")
        lines.append("")
        return lines

    def write_markdown(self, path: str):
        with open(path, 'w', encoding='utf-8') as f:
            f.write("\n".join(self.markdown_lines()))

    def write_histogram(self, path: str):
        """Histogram of working-day cycle times"""
        fig, ax = plt.subplots(figsize=(10, 6))
        values = self.df['WeekDays'].dropna() if not self.df.empty else pd.Series(dtype=float)
        if len(values):
            ax.hist(values, bins=min(30, max(5, len(values) // 3)), color='steelblue', edgecolor='white')
            ax.axvline(values.median(), color='darkorange', linestyle='--', label=f"median {values.median():.1f}")
            ax.legend()
        ax.set_title('Cycle Time Distribution')
        ax.set_xlabel('Working days (started → verified)')
        ax.set_ylabel('Issues')
        fig.tight_layout()
        fig.savefig(path, dpi=150)
        plt.close(fig)


def _format_cell(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
