"""
Tuner module for status parsing, signal estimation and device queries
"""

from .models import TunerStatus, PlpEntry, ProgramEntry, ChannelScanResult, DeviceInfo, SignalEstimate
from .probe import DeviceProbe

__all__ = ['DeviceProbe', 'TunerStatus', 'PlpEntry', 'ProgramEntry', 'ChannelScanResult', 'DeviceInfo', 'SignalEstimate']
