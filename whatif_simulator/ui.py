from __future__ import annotations

from dataclasses import dataclass

import streamlit as st

from whatif_simulator.types import ModificationField


@dataclass(frozen=True)
class SliderConfig:
    field: ModificationField
    label: str
    min: float
    max: float
    step: float = 0.01


MODIFICATION_SLIDERS = [
    SliderConfig(ModificationField.RETENTION, "Retention", -0.5, 0.5),
    SliderConfig(ModificationField.CONVERSION, "Conversion", -0.5, 1.0),
    SliderConfig(ModificationField.ARPU, "ARPU", -0.5, 1.0),
    SliderConfig(ModificationField.DAU, "New Users", -0.5, 1.0),
    SliderConfig(ModificationField.ARPPU, "ARPPU", -0.5, 1.0),
    SliderConfig(ModificationField.SESSION_LENGTH, "Session Length", -0.5, 1.0),
]


def inject_brand_styles() -> None:
    st.markdown(
        """
        <style>
        :root { --brand-accent: #DA7756; --brand-muted: #8F8B82; --brand-bg: #1F1E1D; --brand-text: #F5F4EF; }
        html, body, .stApp { font-family: Helvetica, Arial, sans-serif; }
        h1, h2, h3, h4, h5, h6 { color: var(--brand-accent); }
        .stButton>button { background-color: var(--brand-accent); color: #fff; border: 0; border-radius: 6px; }
        .stButton>button:hover { background-color: #c4664a; }
        .impact-positive { color: #3fa34d; font-weight: 600; }
        .impact-negative { color: #d64545; font-weight: 600; }
        .impact-neutral { color: var(--brand-muted); font-weight: 600; }
        .stApp header { background: transparent; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_brand_header(title: str, subtitle: str) -> None:
    st.markdown(
        f"<div style='padding-top:8px;'><h1 style='margin-bottom:0;'>{title}</h1>"
        f"<p style='margin-top:4px;color:#8F8B82;'>{subtitle}</p></div>",
        unsafe_allow_html=True,
    )
    st.divider()


def format_currency(value: float) -> str:
    return f"${value:,.0f}"


def format_delta(value: float) -> str:
    """Signed percent for a relative delta given as a fraction (0.1 -> '+10%')."""
    return f"{'+' if value >= 0 else ''}{value * 100:.0f}%"


def format_percent_change(value: float) -> str:
    """Signed percent for a value already expressed in percent."""
    return f"{value:+.1f}%"


def render_impact_badge(label: str, impact_type: str) -> None:
    st.markdown(f"<span class='impact-{impact_type}'>{label}</span>", unsafe_allow_html=True)
