"""Placeholder substitution for alert message templates.

Rule templates use bracketed tokens such as ``[Center]`` or
``[SalesCount]``. Substitution is literal string replacement applied in
order; tokens without a value are left in the text unchanged.
"""

from collections.abc import Iterable, Mapping

TRIGGER_TOKENS: dict[str, tuple[str, ...]] = {
    "low_sales": (
        "[Center]", "[SalesCount]", "[Target]", "[HoursRemaining]", "[Percentage]",
    ),
    "zero_sales": ("[Center]", "[Time]"),
    "high_dq": ("[Center]", "[DQPercentage]", "[DQCount]", "[TopIssues]"),
    "low_approval": (
        "[Center]", "[ApprovalRatio]", "[SubmissionCount]", "[UWCount]",
    ),
    "milestone": (
        "[Center]", "[Milestone]", "[SalesCount]", "[Target]", "[Percentage]",
    ),
    "below_threshold_duration": ("[Center]", "[Hours]", "[SalesCount]", "[Target]"),
}

ALL_TOKENS: frozenset[str] = frozenset(
    token for tokens in TRIGGER_TOKENS.values() for token in tokens
)

DEFAULT_TEMPLATES: dict[str, str] = {
    "low_sales": (
        "[Center] is at [SalesCount]/[Target] sales ([Percentage]% of target) "
        "with [HoursRemaining] hours remaining."
    ),
    "zero_sales": "[Center] has recorded zero sales as of [Time].",
    "high_dq": (
        "[Center] DQ rate is [DQPercentage]% ([DQCount] items). "
        "Top issues: [TopIssues]."
    ),
    "low_approval": (
        "[Center] approval ratio is [ApprovalRatio]% "
        "([SubmissionCount] submissions, [UWCount] in underwriting)."
    ),
    "milestone": "[Center] reached [Milestone] of target ([SalesCount]/[Target]).",
    "below_threshold_duration": (
        "[Center] has been behind pace for [Hours] hours: "
        "[SalesCount] sales against a daily target of [Target]."
    ),
}


def build_message(
    template: str,
    tokens: Mapping[str, object] | Iterable[tuple[str, object]],
) -> str:
    """Substitute every ``(token, value)`` pair into ``template``.

    Args:
        template: Message template with ``[Placeholder]`` tokens.
        tokens: Mapping or ordered pairs of token to value. Values are
            converted with ``str()``.

    Returns:
        The substituted message.
    """
    pairs = tokens.items() if isinstance(tokens, Mapping) else tokens
    message = template
    for token, value in pairs:
        message = message.replace(token, str(value))
    return message


def unresolved_tokens(template: str, trigger_type: str) -> list[str]:
    """Tokens in ``template`` the given trigger type will not fill."""
    provided = set(TRIGGER_TOKENS.get(trigger_type, ()))
    return sorted(
        token for token in ALL_TOKENS
        if token in template and token not in provided
    )
