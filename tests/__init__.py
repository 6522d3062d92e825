"""
Test suite for Hippoplan.

This package contains tests for all core functionality including:
- Capture sessions and transcript sources
- Task reconciliation and priorities
- The weekly schedule board
- Planner storage and configuration
- The command-line interface
"""
