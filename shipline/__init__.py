"""shipline: build a Rust binary on push and publish it as a GitHub release."""

__version__ = "0.1.0"
