"""RecoveryOS - recovery-day and task scheduling for orthopedic surgery patients."""

__version__ = "0.1.0"
