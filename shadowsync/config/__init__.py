"""
shadowsync Configuration Module

This module handles loading and validating the settings of a sync run. It
supports YAML-based configuration with environment variable and
command-line overrides.

Author: shadowsync Project
License: MIT
"""

__version__ = "0.1.0"
