"""
Purchase Report
Configuration Module
"""
from .settings import Settings, ReportSettings, MonitoringSettings, get_settings

__all__ = ["Settings", "ReportSettings", "MonitoringSettings", "get_settings"]
