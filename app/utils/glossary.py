# Centralized help text and chart colors for risk categories.

CATEGORY_HELP = {
    # four-category scale (simple regression)
    "Conservative": "Ratings rise with trader risk: the subject favours volatile traders.",
    "Moderate": "No clear link between trader risk and rating.",
    "Aggressive": "Ratings fall moderately as trader risk increases.",
    "Very Aggressive": "Ratings fall sharply as trader risk increases.",
    # five-category scale (multivariate, -2*beta1/beta2)
    "Very Risk Averse": "Strong mean-variance trade-off: extra return barely offsets risk.",
    "Mild Risk Aversion": "Clear preference for lower variance at a given return.",
    "Low Risk Aversion": "Slight preference for lower variance.",
    "Risk Neutral": "Return drives ratings; variance is largely ignored.",
    "Risk Seeking": "Higher variance is rated favourably.",
}

CATEGORY_COLORS = {
    "Conservative": "#ef4444",
    "Moderate": "#f59e0b",
    "Aggressive": "#10b981",
    "Very Aggressive": "#3b82f6",
    "Very Risk Averse": "#ef4444",
    "Mild Risk Aversion": "#f59e0b",
    "Low Risk Aversion": "#3b82f6",
    "Risk Neutral": "#10b981",
    "Risk Seeking": "#8b5cf6",
}

FALLBACK_COLOR = "#6b7280"
