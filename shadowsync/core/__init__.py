"""
shadowsync Core Module

Data model, error types, run log and the engine that coordinates a sync
run. Import SyncEngine from shadowsync.core.sync_engine.

Author: shadowsync Project
License: MIT
"""

__version__ = "0.1.0"
