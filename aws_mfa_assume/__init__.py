"""Assume an AWS IAM role with MFA and print temporary credentials."""

__version__ = "1.0.0"
