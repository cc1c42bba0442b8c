"""Error taxonomy for conversions."""


class ConversionError(Exception):
    """Base class for every error raised by html2slides."""


class MalformedInput(ConversionError):
    """A CSS value or markup fragment could not be parsed.

    Parsers resolve this to a safe default; it is only raised by helpers
    that have no sensible default of their own.
    """


class UnresolvableAsset(ConversionError):
    """An image, gradient or SVG could not be embedded. The element is skipped."""


class CollaboratorUnavailable(ConversionError):
    """The rendering engine or the presentation encoder could not be started."""
