"""
Typed exception hierarchy used across the compose conversion pipeline.
"""
from typing import List


class ComposeConversionError(Exception):
    """
    Root of all errors raised while converting a compose document.
    """


class UnsupportedFeatureError(ComposeConversionError):
    """
    The document uses a compose feature that has no equivalent in the
    target model (``include``, ``configs``, non-external ``secrets``,
    extensions, external networks or volumes).
    """


class MissingRequiredFieldError(ComposeConversionError):
    """
    A field required by the selected output mode is absent,
    e.g. the top-level ``name`` when wrapping containers in a pod.
    """


class ConflictingDependencyError(ComposeConversionError):
    """
    The same dependency target was recorded twice for one unit.
    """


class ConversionFailureError(ComposeConversionError):
    """
    A single service, network or volume could not be mapped onto its
    output resource.
    """


class ComposeParseError(ComposeConversionError):
    """
    The compose file could not be read or is not a valid compose document.
    """


def error_chain(error: BaseException) -> List[str]:
    """
    Collects the messages of an exception and its causes, outermost first.

    :param error: The outermost exception.
    :return: One message per link of the chain.
    """
    messages = []
    seen = set()
    current = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(str(current) or type(current).__name__)
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__
    return messages


def format_error_chain(error: BaseException) -> str:
    """
    Formats an exception chain for display::

        error converting compose file into Quadlet files

        Caused by:
            0: error converting service `db` into a Quadlet container
            1: `build` is not supported
    """
    messages = error_chain(error)
    if len(messages) == 1:
        return messages[0]
    lines = [messages[0], "", "Caused by:"]
    for index, message in enumerate(messages[1:]):
        lines.append(f"    {index}: {message}")
    return "\n".join(lines)
