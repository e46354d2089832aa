"""
Utilities for string interpolation using environment variables.
"""
import re
from typing import Dict


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports $VAR, ${VAR}, ${VAR:-default}, ${VAR-default}, ${VAR:+value},
    ${VAR+value}, ${VAR:?error}, ${VAR?error} and the $$ escape.
    """
    PATTERN = re.compile(
        r"\$(?:(?P<escaped>\$)"
        r"|(?P<named>[A-Za-z_][A-Za-z0-9_]*)"
        r"|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<modifier>:?[-+?])(?P<alt>[^}]*))?\})"
    )

    @classmethod
    def interpolate(cls, template: str, context: Dict[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        Unset variables without a modifier resolve to an empty string, like
        Docker Compose does.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises KeyError: If a ``?`` modifier is used and the variable is unset.
        """

        def replace(match):
            if match.group("escaped"):
                return "$"
            var_name = match.group("named") or match.group("braced")
            modifier = match.group("modifier")
            alt_value = match.group("alt") or ""
            value = context.get(var_name)

            if modifier is None:
                return value if value is not None else ""

            # With a colon the empty string counts as unset
            is_set = bool(value) if modifier.startswith(":") else value is not None
            operator = modifier[-1]
            if operator == "-":
                return value if is_set else alt_value
            if operator == "+":
                return alt_value if is_set else ""
            if not is_set:
                raise KeyError(alt_value or f"Variable {var_name} not set")
            return value

        return cls.PATTERN.sub(replace, template)
