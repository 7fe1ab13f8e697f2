"""
Indexed performance chart.

Renders an aligned series as one line per ticker plus the benchmark, all
indexed to 100 at their baseline:
  - a dashed reference line at 100,
  - mention dots in ``SINCE_MENTION`` mode,
  - a metric card per series with its total return (and alpha for tickers).
"""
from typing import Optional

import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from loguru import logger

from src.icarus.analysis.performance import PerformanceSummary
from src.icarus.core.aligner import INDEX_BASE, AlignedSeries
from src.icarus.core.window import BENCHMARK_KEY


class IndexedChartPlotter:
    """Renders aligned ticker-vs-benchmark charts to image files."""

    BENCHMARK_COLOR = "#888888"
    PALETTE = [
        "#0055ff", "#ff9900", "#00cc00", "#ff3333", "#aa00ff",
        "#00cccc", "#ffcc00", "#ff66cc", "#66ff66", "#3399ff",
    ]

    def __init__(self, style: str = "dark_background"):
        self.style = style

    def color_for(self, key: str, position: int) -> str:
        if key == BENCHMARK_KEY:
            return self.BENCHMARK_COLOR
        return self.PALETTE[position % len(self.PALETTE)]

    def plot(
        self,
        series: AlignedSeries,
        summary: PerformanceSummary,
        output_file: str = "indexed_chart.png",
        title: Optional[str] = None,
        benchmark_label: str = "SPY",
    ) -> Optional[str]:
        """Draw *series* and save it.

        Args:
            series: Aligned, indexed table.
            summary: Performance numbers shown in the metric cards.
            output_file: Destination image path.
            title: Chart title; derived from the policy when omitted.
            benchmark_label: Legend label for the benchmark column.

        Returns:
            The written path, or ``None`` when there was nothing to draw.
        """
        if series.is_empty:
            logger.warning("No data to display. Add some tickers to get started.")
            return None

        logger.info(f"Rendering {len(series.columns)} series over {len(series.rows)} dates...")

        with plt.style.context(self.style):
            fig, ax = plt.subplots(figsize=(16, 9))
            colors = {}

            for i, key in enumerate(series.columns):
                cells = series.column(key)
                if not cells:
                    continue
                colors[key] = self.color_for(key, i)
                dates, values = zip(*cells)
                is_bench = key == BENCHMARK_KEY
                ax.plot(
                    dates, values,
                    label=benchmark_label if is_bench else key,
                    color=colors[key],
                    linewidth=1.5 if is_bench else 2,
                    linestyle="--" if is_bench else "-",
                    alpha=0.9,
                )

            ax.axhline(INDEX_BASE, color="white", linestyle=":", linewidth=1, alpha=0.5)

            for marker in series.mention_markers:
                ax.scatter(
                    [marker.baseline_date], [marker.value],
                    s=60, zorder=5,
                    color=colors.get(marker.symbol, "white"),
                    edgecolors="white",
                )

            # Metric cards, best performer on top.
            for i, (key, total) in enumerate(summary.ranked()):
                label = benchmark_label if key == BENCHMARK_KEY else key
                text = f"{label}: {total:+.1f}%"
                alpha = summary.alpha_of(key) if key != BENCHMARK_KEY else None
                if alpha is not None:
                    text += f"\nAlpha: {alpha:+.1f}%"
                ax.text(
                    0.01, 0.98 - (i * 0.08), text,
                    transform=ax.transAxes,
                    fontsize=9, color="white", verticalalignment="top",
                    bbox=dict(
                        boxstyle="round,pad=0.3", facecolor="#111111",
                        edgecolor=colors.get(key, "white"), linewidth=1.5, alpha=0.8,
                    ),
                )

            if title is None:
                title = f"Indexed Performance ({series.policy.value})"
            ax.set_title(title, fontsize=16, pad=15, weight="bold")
            ax.set_ylabel(f"Indexed Value ({INDEX_BASE:.0f} = baseline)", fontsize=12)
            ax.xaxis.set_major_formatter(mdates.DateFormatter("%b %d"))
            ax.grid(True, color="#444444", linestyle="-", linewidth=0.5, alpha=0.3)
            ax.legend(loc="upper right", fontsize=10, facecolor="#1a1a1a", edgecolor="gray")

            fig.savefig(output_file, dpi=150, bbox_inches="tight")
            plt.close(fig)

        logger.success(f"Chart saved to {output_file}")
        return output_file
