"""Shared helpers for fleetadm."""

from fa_common.api import FleetSettings, HostSpec, configure_logging, load_settings

__all__ = ["configure_logging", "FleetSettings", "HostSpec", "load_settings"]
