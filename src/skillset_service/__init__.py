"""Skillset service: task bounties, video submissions, and token rewards."""

__version__ = "0.1.0"
