from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from ..domain.models import CATEGORIES, Category, TrendPoint

RADIAL_MAX = 10


# --- Colour helpers ---
def hex_to_rgb(h: str) -> tuple[int, int, int]:
    h = h.lstrip("#")
    return (
        int(h[0:2], 16),
        int(h[2:4], 16),
        int(h[4:6], 16),
    )


def with_alpha(h: str, alpha: float) -> str:
    r, g, b = hex_to_rgb(h)
    return f"rgba({r},{g},{b},{alpha:.2f})"


def wedge_angles(n: int) -> tuple[np.ndarray, float]:
    """Centre angle (degrees) of each of ``n`` equal wedges, starting at 12 o'clock."""
    width = 360.0 / n
    return np.arange(n) * width + width / 2.0, width


def make_wheel_figure(
    scores: Mapping[str, int],
    categories: Sequence[Category] = CATEGORIES,
    title: str | None = None,
) -> go.Figure:
    """
    One Barpolar wedge per category, radius = score on a fixed 0..10 axis.

    Categories missing from ``scores`` are drawn with radius 0.
    """
    theta, width = wedge_angles(len(categories))
    r = [int(scores.get(c.id, 0)) for c in categories]

    fig = go.Figure()
    # faint full-size ring behind the scores
    fig.add_trace(
        go.Barpolar(
            r=[RADIAL_MAX] * len(categories),
            theta=theta,
            width=[width] * len(categories),
            marker=dict(color=[with_alpha(c.color, 0.15) for c in categories], line=dict(width=0)),
            hoverinfo="skip",
            showlegend=False,
        )
    )
    fig.add_trace(
        go.Barpolar(
            r=r,
            theta=theta,
            width=[width] * len(categories),
            marker=dict(
                color=[c.color for c in categories],
                line=dict(color="white", width=2),
            ),
            customdata=[c.name for c in categories],
            hovertemplate="%{customdata}: %{r}<extra></extra>",
            showlegend=False,
        )
    )
    fig.update_layout(
        title=title,
        polar=dict(
            radialaxis=dict(range=[0, RADIAL_MAX], showticklabels=False, ticks=""),
            angularaxis=dict(
                direction="clockwise",
                rotation=90,
                tickmode="array",
                tickvals=theta.tolist(),
                ticktext=[c.name for c in categories],
            ),
        ),
        margin=dict(l=30, r=30, t=50 if title else 20, b=20),
        paper_bgcolor="rgba(0,0,0,0)",
    )
    return fig


def trend_frame(points: Sequence[TrendPoint]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "label": [p.label for p in points],
            "created_at": [p.created_at for p in points],
            "average": [round(p.average, 2) for p in points],
        },
        columns=["label", "created_at", "average"],
    )


def make_trend_figure(points: Sequence[TrendPoint]) -> go.Figure:
    df = trend_frame(points)
    fig = go.Figure(
        go.Scatter(
            x=df["label"],
            y=df["average"],
            mode="lines+markers",
            line=dict(color="#2563eb", width=3),
            marker=dict(size=8),
            hovertemplate="%{x}: %{y:.2f}<extra></extra>",
        )
    )
    fig.update_layout(
        yaxis=dict(range=[0, RADIAL_MAX], title="Average"),
        xaxis=dict(title=None, type="category"),
        margin=dict(l=40, r=20, t=20, b=40),
    )
    return fig


def make_category_average_figure(
    averages: Mapping[str, float], categories: Sequence[Category] = CATEGORIES
) -> go.Figure:
    df = pd.DataFrame(
        {
            "category": [c.name for c in categories],
            "average": [round(float(averages.get(c.id, 0.0)), 2) for c in categories],
            "color": [c.color for c in categories],
        }
    )
    fig = go.Figure(
        go.Bar(
            x=df["category"],
            y=df["average"],
            marker=dict(color=df["color"].tolist()),
            hovertemplate="%{x}: %{y:.2f}<extra></extra>",
        )
    )
    fig.update_layout(
        yaxis=dict(range=[0, RADIAL_MAX], title="Average score"),
        margin=dict(l=40, r=20, t=20, b=40),
    )
    return fig
