"""
Core modules for Usage Insights.

This package contains the voice catalog, the playback and tutor
aggregators, the streak calculator and report assembly.
"""
