"""Commitment scheduling, proof verification and recap aggregation core."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("commitbot")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.0.0"
