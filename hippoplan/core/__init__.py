"""
Core functionality for Hippoplan.

This package contains the main logic for:
- Continuous speech capture into an editable list of task texts
- Task identity and priority reconciliation
- Weekly schedule board assignments
- Configuration, persistence and debug logging
"""
