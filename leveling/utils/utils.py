def style_minutes(minutes: float) -> str:
    """Format minutes with two decimals, switching to hours past one hour"""
    if minutes < 60:
        return f"{minutes:.2f} min"
    hours = minutes / 60
    return f"{minutes:.2f} min ({hours:.1f}h)"


def style_ratio(ratio: float, warn_below: float = 0.999, over: float = 1.001) -> str:
    """Percentage styled green when on target, red when short, magenta when over"""
    if ratio > over:
        color = "magenta"
    elif ratio < warn_below:
        color = "red"
    else:
        color = "green"
    return f"[{color}]{ratio:.0%}[/{color}]"
