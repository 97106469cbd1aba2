"""Coded errors for CLI display and import failure summaries.

A ShipTrackError is what the CLI prints: a registry code, the rendered
message and the remediation line. Import failures additionally carry the
rows they came from, as a mapping of 1-based row number to row key, so a
summary can say which orders or tracking codes need attention.
"""

from dataclasses import dataclass, field

from shiptrack.errors.registry import get_error

_UNKNOWN_REMEDIATION = "Re-run with --verbose and report the log output."


@dataclass
class ShipTrackError(Exception):
    """Application error with code, message and affected rows.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action the operator should take.
        rows: Affected row number -> row key (order id, tracking id or
            shipment id). Empty outside batch imports.
        field_name: Offending input field, when one is known.
        is_retryable: Whether retrying unchanged input can succeed.
    """

    code: str
    message: str
    remediation: str
    rows: dict[int, str | int] = field(default_factory=dict)
    field_name: str | None = None
    is_retryable: bool = False

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **context: object) -> "ShipTrackError":
        """Build an error from its registry entry.

        ``context`` fills the message template; a template whose
        placeholders are not all supplied is kept verbatim.
        """
        error_def = get_error(code)
        if error_def is None:
            return cls(code=code, message=f"Unknown error: {code}",
                       remediation=_UNKNOWN_REMEDIATION)
        try:
            message = error_def.message_template.format(**context)
        except KeyError:
            message = error_def.message_template
        return cls(
            code=code,
            message=message,
            remediation=error_def.remediation,
            is_retryable=error_def.is_retryable,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> "ShipTrackError":
        """Wrap a raised exception, using its ``code`` attribute if it has one.

        The exception text becomes the message; remediation comes from the
        registry entry for the code.
        """
        code = getattr(exc, "code", "E-4003")
        error_def = get_error(code)
        return cls(
            code=code,
            message=str(exc) or type(exc).__name__,
            remediation=error_def.remediation if error_def else _UNKNOWN_REMEDIATION,
            field_name=getattr(exc, "field", None),
            is_retryable=error_def.is_retryable if error_def else False,
        )


def _describe_rows(rows: dict[int, str | int]) -> str:
    return ", ".join(f"{number} ({key})" for number, key in sorted(rows.items()))


def format_error(error: ShipTrackError, include_remediation: bool = True) -> str:
    """Render one error as indented lines for the terminal."""
    lines = [str(error)]
    if error.rows:
        lines.append(f"  Rows: {_describe_rows(error.rows)}")
    if error.field_name:
        lines.append(f"  Field: {error.field_name}")
    if include_remediation:
        lines.append(f"  Action: {error.remediation}")
    return "\n".join(lines)


def group_errors(errors: list[ShipTrackError]) -> list[ShipTrackError]:
    """Merge row failures that share a code, keeping first-seen code order."""
    groups: dict[str, ShipTrackError] = {}
    for error in errors:
        group = groups.get(error.code)
        if group is None:
            groups[error.code] = ShipTrackError(
                code=error.code,
                message=error.message,
                remediation=error.remediation,
                rows=dict(error.rows),
                field_name=error.field_name,
                is_retryable=error.is_retryable,
            )
        else:
            group.rows.update(error.rows)
    return list(groups.values())


def format_error_summary(errors: list[ShipTrackError]) -> str:
    """Summarize failed rows, one block per error code."""
    if not errors:
        return "No errors."
    grouped = group_errors(errors)
    if len(grouped) == 1:
        return format_error(grouped[0])
    failed = sum(len(e.rows) for e in grouped)
    blocks = [f"{failed} row(s) failed with {len(grouped)} error code(s):"]
    blocks.extend(format_error(e) for e in grouped)
    return "\n\n".join(blocks)
